"""
Tests for messaging models and querysets.
"""

import uuid
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from messaging.models import (
    Conversation,
    Message,
    ParticipantRole,
    fit_listing_price,
    fits_listing_image,
    unread_for,
)
from messaging.tests.factories import ConversationFactory, MessageFactory


@pytest.mark.django_db
class TestConversationConstraints:
    def test_one_conversation_per_listing_buyer_seller(self):
        existing = ConversationFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            ConversationFactory(
                listing_id=existing.listing_id,
                buyer_id=existing.buyer_id,
                seller_id=existing.seller_id,
            )

    def test_reversed_roles_are_a_different_conversation(self):
        existing = ConversationFactory()

        reversed_roles = ConversationFactory(
            listing_id=existing.listing_id,
            buyer_id=existing.seller_id,
            seller_id=existing.buyer_id,
        )

        assert reversed_roles.pk != existing.pk

    def test_one_listingless_conversation_per_pair(self):
        existing = ConversationFactory(listing_id=None)

        with pytest.raises(IntegrityError), transaction.atomic():
            ConversationFactory(
                listing_id=None,
                buyer_id=existing.buyer_id,
                seller_id=existing.seller_id,
            )

    def test_buyer_and_seller_must_differ(self):
        user_id = uuid.uuid4()

        with pytest.raises(IntegrityError), transaction.atomic():
            ConversationFactory(buyer_id=user_id, seller_id=user_id)


@pytest.mark.django_db
class TestConversationRoles:
    def test_role_of(self):
        conversation = ConversationFactory()

        assert conversation.role_of(conversation.buyer_id) == ParticipantRole.BUYER
        assert conversation.role_of(conversation.seller_id) == ParticipantRole.SELLER
        assert conversation.role_of(uuid.uuid4()) is None

    def test_other_participant_id(self):
        conversation = ConversationFactory()

        assert conversation.other_participant_id(conversation.buyer_id) == conversation.seller_id
        assert conversation.other_participant_id(conversation.seller_id) == conversation.buyer_id
        assert conversation.other_participant_id(uuid.uuid4()) is None

    def test_unread_for_reads_own_side(self):
        conversation = ConversationFactory(buyer_unread_count=2, seller_unread_count=5)

        assert unread_for(conversation, conversation.buyer_id) == 2
        assert unread_for(conversation, conversation.seller_id) == 5
        assert unread_for(conversation, uuid.uuid4()) == 0

    def test_defaults(self):
        conversation = ConversationFactory()

        assert conversation.buyer_unread_count == 0
        assert conversation.seller_unread_count == 0
        assert conversation.last_message_at is None
        assert conversation.last_message_preview == ""
        assert not conversation.is_archived_by_buyer
        assert not conversation.is_archived_by_seller


@pytest.mark.django_db
class TestConversationQuerySet:
    def test_for_user_matches_either_side(self):
        user_id = uuid.uuid4()
        as_buyer = ConversationFactory(buyer_id=user_id)
        as_seller = ConversationFactory(seller_id=user_id)
        ConversationFactory()

        assert set(Conversation.objects.for_user(user_id)) == {as_buyer, as_seller}

    def test_visible_to_uses_callers_archive_flag_only(self):
        conversation = ConversationFactory(is_archived_by_seller=True)

        assert list(Conversation.objects.visible_to(conversation.buyer_id)) == [conversation]
        assert list(Conversation.objects.visible_to(conversation.seller_id)) == []
        assert list(Conversation.objects.visible_to(conversation.seller_id, archived=True)) == [conversation]

    def test_for_triple_is_directional(self):
        conversation = ConversationFactory()

        assert Conversation.objects.for_triple(
            conversation.listing_id, conversation.buyer_id, conversation.seller_id
        ).get() == conversation
        assert not Conversation.objects.for_triple(
            conversation.listing_id, conversation.seller_id, conversation.buyer_id
        ).exists()

    def test_for_triple_without_listing(self):
        conversation = ConversationFactory(listing_id=None)

        assert Conversation.objects.for_triple(None, conversation.buyer_id, conversation.seller_id).get() == conversation

    def test_with_unread_for_annotates_callers_counter(self):
        conversation = ConversationFactory(buyer_unread_count=3, seller_unread_count=1)

        as_buyer = Conversation.objects.with_unread_for(conversation.buyer_id).get()
        as_seller = Conversation.objects.with_unread_for(conversation.seller_id).get()

        assert as_buyer.unread_count == 3
        assert as_seller.unread_count == 1


@pytest.mark.django_db
class TestMessage:
    def test_newest_first_breaks_timestamp_ties_by_id(self):
        conversation = ConversationFactory()
        first = MessageFactory(conversation=conversation)
        second = MessageFactory(conversation=conversation)
        Message.objects.filter(pk__in=[first.pk, second.pk]).update(created_at=first.created_at)

        ordered = list(conversation.messages.newest_first())

        assert ordered == [second, first]

    def test_unread_for_reader_excludes_own_and_read_messages(self):
        conversation = ConversationFactory()
        from_seller = MessageFactory(conversation=conversation, sender_id=conversation.seller_id)
        MessageFactory(conversation=conversation, sender_id=conversation.seller_id, is_read=True)
        MessageFactory(conversation=conversation, sender_id=conversation.buyer_id)

        assert list(conversation.messages.unread_for_reader(conversation.buyer_id)) == [from_seller]

    def test_str_truncates_long_content(self):
        message = MessageFactory(content="x" * 80)

        assert str(message).endswith("x" * 50 + "...")


class TestListingSnapshotLimits:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("18500"), Decimal("18500.00")),
            ("0.005", Decimal("0.01")),
            (Decimal("999999999999.99"), Decimal("999999999999.99")),
            (Decimal("999999999999.995"), None),
            (Decimal("1000000000000.00"), None),
            (Decimal("NaN"), None),
            (Decimal("Infinity"), None),
            ("abc", None),
            (None, None),
        ],
    )
    def test_fit_listing_price(self, value, expected):
        assert fit_listing_price(value) == expected

    def test_fits_listing_image(self):
        assert fits_listing_image(None)
        assert fits_listing_image("https://cdn.test/" + "a" * 1000)
        assert not fits_listing_image("https://cdn.test/" + "a" * 1100)
