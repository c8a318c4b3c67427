"""
Messaging models.

Models:
    Conversation: One thread per (listing, buyer, seller) with per-side unread counters
    Message: A single message, totally ordered inside its conversation by (created_at, id)

Design Decisions:
    - Participants and listings are opaque UUIDs owned by other services,
      so there are no foreign keys to them
    - Roles are fixed at creation; the caller's role is derived per request
    - Unread state lives in two counters on the conversation row so the
      unread badge is one indexed read, not a COUNT over messages
    - Counters only move inside the send/mark-read transactions in
      messaging.services
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import models
from django.db.models import Case, F, Q, When

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class ParticipantRole(models.TextChoices):
    """Side of a conversation a user is on."""

    BUYER = "buyer", "Buyer"
    SELLER = "seller", "Seller"


class ConversationQuerySet(models.QuerySet):
    """Query helpers scoped to one caller."""

    def for_user(self, user_id: uuid.UUID) -> ConversationQuerySet:
        """Conversations where user_id is the buyer or the seller."""
        return self.filter(Q(buyer_id=user_id) | Q(seller_id=user_id))

    def visible_to(self, user_id: uuid.UUID, archived: bool = False) -> ConversationQuerySet:
        """
        The caller's conversations filtered by the caller's own archive flag.

        The other side's flag never affects what the caller sees.
        """
        return self.filter(
            Q(buyer_id=user_id, is_archived_by_buyer=archived)
            | Q(seller_id=user_id, is_archived_by_seller=archived)
        )

    def for_triple(
        self,
        listing_id: uuid.UUID | None,
        buyer_id: uuid.UUID,
        seller_id: uuid.UUID,
    ) -> ConversationQuerySet:
        """Exact directional match on (listing, buyer, seller)."""
        if listing_id is None:
            return self.filter(listing_id__isnull=True, buyer_id=buyer_id, seller_id=seller_id)
        return self.filter(listing_id=listing_id, buyer_id=buyer_id, seller_id=seller_id)

    def with_unread_for(self, user_id: uuid.UUID) -> ConversationQuerySet:
        """Annotate unread_count with the counter belonging to user_id's side."""
        return self.annotate(
            unread_count=Case(
                When(buyer_id=user_id, then=F("buyer_unread_count")),
                default=F("seller_unread_count"),
                output_field=models.PositiveIntegerField(),
            )
        )


class Conversation(UUIDPrimaryKeyMixin, BaseModel):
    """
    A buyer/seller thread about a listing.

    Listing display fields are a snapshot taken at creation and are never
    re-synced; a failed lookup leaves them empty.

    Unread counters:
        buyer_unread_count: seller-authored messages the buyer has not marked read
        seller_unread_count: buyer-authored messages the seller has not marked read
    """

    listing_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Listing this conversation is about (owned by the listings service)",
    )
    buyer_id = models.UUIDField(
        help_text="User who started the conversation as the buyer",
    )
    seller_id = models.UUIDField(
        help_text="User selling the listing",
    )

    listing_title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Listing title at conversation creation",
    )
    listing_image = models.URLField(
        max_length=1024,
        null=True,
        blank=True,
        help_text="Listing cover image URL at conversation creation",
    )
    listing_price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Listing price at conversation creation",
    )

    buyer_unread_count = models.PositiveIntegerField(
        default=0,
        help_text="Messages from the seller not yet read by the buyer",
    )
    seller_unread_count = models.PositiveIntegerField(
        default=0,
        help_text="Messages from the buyer not yet read by the seller",
    )

    last_message_preview = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Truncated content of the most recent message",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of the most recent message (for sorting conversation lists)",
    )

    is_archived_by_buyer = models.BooleanField(
        default=False,
        help_text="Hidden from the buyer's default conversation list",
    )
    is_archived_by_seller = models.BooleanField(
        default=False,
        help_text="Hidden from the seller's default conversation list",
    )

    objects = ConversationQuerySet.as_manager()

    class Meta:
        db_table = "messaging_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["buyer_id", "-last_message_at"],
                name="msg_conv_buyer_recent_idx",
            ),
            models.Index(
                fields=["seller_id", "-last_message_at"],
                name="msg_conv_seller_recent_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["listing_id", "buyer_id", "seller_id"],
                name="unique_conversation_per_listing_pair",
            ),
            # NULLs are distinct in unique indexes, so listing-less threads need their own
            models.UniqueConstraint(
                fields=["buyer_id", "seller_id"],
                condition=Q(listing_id__isnull=True),
                name="unique_conversation_per_pair_without_listing",
            ),
            models.CheckConstraint(
                condition=~Q(buyer_id=F("seller_id")),
                name="conversation_buyer_not_seller",
            ),
            models.CheckConstraint(
                condition=Q(buyer_unread_count__gte=0) & Q(seller_unread_count__gte=0),
                name="conversation_unread_counts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Conversation({self.pk}, listing={self.listing_id})"

    def role_of(self, user_id: uuid.UUID) -> ParticipantRole | None:
        """Role of user_id in this conversation, or None for outsiders."""
        if user_id == self.buyer_id:
            return ParticipantRole.BUYER
        if user_id == self.seller_id:
            return ParticipantRole.SELLER
        return None

    def is_participant(self, user_id: uuid.UUID) -> bool:
        return self.role_of(user_id) is not None

    def other_participant_id(self, user_id: uuid.UUID) -> uuid.UUID | None:
        role = self.role_of(user_id)
        if role == ParticipantRole.BUYER:
            return self.seller_id
        if role == ParticipantRole.SELLER:
            return self.buyer_id
        return None

    @staticmethod
    def unread_field_for(role: ParticipantRole) -> str:
        """Name of the counter column a participant in role reads from."""
        if role == ParticipantRole.BUYER:
            return "buyer_unread_count"
        return "seller_unread_count"


def fit_listing_price(value) -> Decimal | None:
    """
    value quantized to the listing_price column, or None if it cannot be stored.

    Non-numeric, non-finite and out-of-range prices all give None.
    """
    if value is None:
        return None
    field = Conversation._meta.get_field("listing_price")
    try:
        price = Decimal(value).quantize(Decimal(1).scaleb(-field.decimal_places), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not price.is_finite() or price.adjusted() >= field.max_digits - field.decimal_places:
        return None
    return price


def fits_listing_image(url: str | None) -> bool:
    return url is None or len(url) <= Conversation._meta.get_field("listing_image").max_length


def unread_for(conversation: Conversation, user_id: uuid.UUID) -> int:
    """
    Unread count from user_id's point of view.

    Outsiders get 0; callers are expected to have checked participation.
    """
    role = conversation.role_of(user_id)
    if role is None:
        return 0
    return getattr(conversation, Conversation.unread_field_for(role))


class MessageQuerySet(models.QuerySet):
    def newest_first(self) -> MessageQuerySet:
        return self.order_by("-created_at", "-id")

    def unread_for_reader(self, reader_id: uuid.UUID) -> MessageQuerySet:
        """Unread messages the reader did not author."""
        return self.filter(is_read=False).exclude(sender_id=reader_id)


class Message(BaseModel):
    """
    A message inside a conversation.

    The auto-increment id breaks created_at ties, which makes
    (created_at, id) a total order within the conversation. Content is
    immutable; only is_read / read_at change after insert.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )
    sender_id = models.UUIDField(
        db_index=True,
        help_text="Participant who authored the message",
    )
    content = models.TextField(
        help_text="Message text",
    )
    is_read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has marked the conversation read since this arrived",
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient marked this message read",
    )

    objects = MessageQuerySet.as_manager()

    class Meta:
        db_table = "messaging_message"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["conversation", "-created_at", "-id"],
                name="msg_message_conv_order_idx",
            ),
            models.Index(
                fields=["conversation", "is_read"],
                name="msg_message_conv_unread_idx",
                condition=Q(is_read=False),
            ),
        ]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"{self.sender_id}: {preview}"
