"""
Messaging service layer.

Services:
    ConversationResolver: (listing, buyer, seller) -> existing conversation ID
    MessagingService: create, send, mark read, read paths, archive
    UnreadAggregator: per-user unread totals across conversations

Consistency rules:
    - One conversation per (listing, buyer, seller). Backed by a unique
      constraint; a losing concurrent creator re-resolves and sends into
      the winner instead of failing.
    - A send inserts the message, refreshes the preview and increments the
      recipient's counter in one transaction, with the conversation row
      locked so sends and mark-reads on one conversation serialize.
    - Mark-read zeroes only the caller's counter.
    - Participation is checked before any mutation.

Usage:
    from messaging.services import MessagingService, UnreadAggregator

    result = MessagingService.create_conversation(
        buyer_id=request.user.pk,
        listing_id=listing_id,
        seller_id=seller_id,
        initial_message="Is this still available?",
    )
    if result.success:
        conversation_id = result.data.conversation_id
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import ExternalServiceError
from core.helpers import calculate_pagination, parse_uuid
from core.services import BaseService, ServiceResult
from messaging.collaborators import (
    get_listing_directory,
    get_notification_sink,
    get_user_directory,
)
from messaging.constants import MESSAGING_CONFIG, ErrorCode
from messaging.models import (
    Conversation,
    Message,
    ParticipantRole,
    fit_listing_price,
    fits_listing_image,
    unread_for,
)

if TYPE_CHECKING:
    from typing import Any

    from messaging.collaborators import ListingSummary, UserSummary


# =============================================================================
# Result types
# =============================================================================


@dataclass
class ConversationCreated:
    conversation_id: uuid.UUID
    is_new: bool
    message: Message


@dataclass
class ConversationDetail:
    """A conversation as seen by one participant."""

    conversation: Conversation
    role: ParticipantRole
    unread_count: int
    other_participant: UserSummary | None
    messages: list[Message] = field(default_factory=list)


@dataclass
class ConversationListItem:
    conversation: Conversation
    role: ParticipantRole
    unread_count: int
    other_participant: UserSummary | None


@dataclass
class ConversationPage:
    conversations: list[ConversationListItem]
    pagination: dict[str, Any]


@dataclass
class MessagePage:
    messages: list[Message]
    pagination: dict[str, Any]


@dataclass
class ConversationUnread:
    conversation_id: uuid.UUID
    unread: int


@dataclass
class UnreadSummary:
    total_unread: int
    by_conversation: list[ConversationUnread]


# =============================================================================
# ConversationResolver
# =============================================================================


class ConversationResolver(BaseService):
    """Looks up the conversation for a directional triple. Never writes."""

    @classmethod
    def resolve(
        cls,
        listing_id: uuid.UUID | None,
        buyer_id: uuid.UUID,
        seller_id: uuid.UUID,
    ) -> ServiceResult[uuid.UUID | None]:
        """
        Return the existing conversation's ID, or None when there is none.

        (L, A, B) and (L, B, A) are different conversations: roles are
        not interchangeable.

        Error codes:
            SELF_CONVERSATION: buyer and seller are the same user
        """
        if buyer_id == seller_id:
            return ServiceResult.failure(
                "You cannot start a conversation with yourself",
                error_code=ErrorCode.SELF_CONVERSATION,
            )

        conversation_id = (
            Conversation.objects.for_triple(listing_id, buyer_id, seller_id)
            .values_list("pk", flat=True)
            .first()
        )
        return ServiceResult.success(conversation_id)


# =============================================================================
# MessagingService
# =============================================================================


class MessagingService(BaseService):
    """
    Conversation and message operations for an authenticated caller.

    Every operation takes the caller's user ID explicitly; views pass
    request.user.pk.
    """

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    @classmethod
    def create_conversation(
        cls,
        buyer_id: uuid.UUID,
        listing_id: uuid.UUID,
        seller_id: uuid.UUID,
        initial_message: str,
    ) -> ServiceResult[ConversationCreated]:
        """
        Start (or continue) the caller's conversation about a listing.

        If the conversation already exists the message is sent into it and
        is_new is False. Otherwise the listing is looked up (best-effort),
        the conversation inserted and the first message sent, all in one
        transaction.

        Error codes:
            INVALID_INPUT: malformed IDs or blank/oversized message
            SELF_CONVERSATION: caller is the seller
            CONFLICT: lost a creation race and the winner is not visible yet
            UNAVAILABLE: storage failure
        """
        invalid = cls._invalid_ids(buyer_id=buyer_id, listing_id=listing_id, seller_id=seller_id)
        if invalid:
            return invalid
        buyer_id, listing_id, seller_id = parse_uuid(buyer_id), parse_uuid(listing_id), parse_uuid(seller_id)

        invalid = cls._invalid_content(initial_message)
        if invalid:
            return invalid

        try:
            resolved = ConversationResolver.resolve(listing_id, buyer_id, seller_id)
        except DatabaseError as e:
            return cls.handle_exception(e, f"create_conversation listing={listing_id}")
        if not resolved:
            return resolved
        if resolved.data is not None:
            return cls.send_message(resolved.data, buyer_id, initial_message).map(
                lambda message: ConversationCreated(message.conversation_id, False, message)
            )

        listing = cls._fetch_listing(listing_id)

        try:
            with cls.atomic():
                conversation, is_new = cls._insert_conversation(listing_id, buyer_id, seller_id, listing)
                if conversation is None:
                    return ServiceResult.failure(
                        "Conversation is being created by another request, please retry",
                        error_code=ErrorCode.CONFLICT,
                    )
                message = cls._append_message(conversation, buyer_id, initial_message)
        except DatabaseError as e:
            return cls.handle_exception(e, f"create_conversation listing={listing_id}")

        if is_new:
            cls.get_logger().info(
                f"Conversation {conversation.pk} created",
                extra={
                    "conversation_id": str(conversation.pk),
                    "listing_id": str(listing_id),
                    "buyer_id": str(buyer_id),
                    "seller_id": str(seller_id),
                },
            )
        return ServiceResult.success(ConversationCreated(conversation.pk, is_new, message))

    @classmethod
    def _insert_conversation(
        cls,
        listing_id: uuid.UUID,
        buyer_id: uuid.UUID,
        seller_id: uuid.UUID,
        listing: ListingSummary | None,
    ) -> tuple[Conversation | None, bool]:
        """
        Insert the conversation or, if a concurrent request won, lock the winner.

        Must run inside a transaction. The insert gets its own savepoint so
        the unique violation does not poison the outer transaction.
        """
        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    listing_id=listing_id,
                    buyer_id=buyer_id,
                    seller_id=seller_id,
                    **cls._listing_snapshot(listing_id, listing),
                )
            return conversation, True
        except IntegrityError:
            cls.get_logger().info(
                "Lost conversation creation race, routing message to the winner",
                extra={"listing_id": str(listing_id), "buyer_id": str(buyer_id)},
            )

        winner = (
            Conversation.objects.select_for_update()
            .for_triple(listing_id, buyer_id, seller_id)
            .first()
        )
        return winner, False

    @classmethod
    def _listing_snapshot(cls, listing_id: uuid.UUID, listing: ListingSummary | None) -> dict[str, Any]:
        """Listing fields for the new row; values the columns cannot hold are left empty."""
        if listing is None:
            return {"listing_title": "", "listing_image": None, "listing_price": None}

        price = fit_listing_price(listing.price)
        image = listing.cover_image if fits_listing_image(listing.cover_image) else None
        if (listing.price is not None and price is None) or image != listing.cover_image:
            cls.get_logger().warning(
                "Listing price or image cannot be stored, caching the conversation without it",
                extra={"listing_id": str(listing_id)},
            )
        return {
            "listing_title": (listing.title or "")[: Conversation._meta.get_field("listing_title").max_length],
            "listing_image": image,
            "listing_price": price,
        }

    @classmethod
    def _fetch_listing(cls, listing_id: uuid.UUID) -> ListingSummary | None:
        try:
            return get_listing_directory().get_listing_summary(listing_id)
        except ExternalServiceError as e:
            cls.get_logger().warning(
                f"Listing lookup failed, creating conversation without listing details: {e}",
                extra={"listing_id": str(listing_id), "error_code": e.error_code},
            )
            return None

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    @classmethod
    def send_message(
        cls,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
    ) -> ServiceResult[Message]:
        """
        Append a message and bump the recipient's unread counter.

        Error codes:
            INVALID_INPUT: malformed IDs or blank/oversized content
            NOT_FOUND: no such conversation
            NOT_PARTICIPANT: sender is neither buyer nor seller
            UNAVAILABLE: storage failure (nothing was written)
        """
        invalid = cls._invalid_ids(conversation_id=conversation_id, sender_id=sender_id)
        if invalid:
            return invalid
        conversation_id, sender_id = parse_uuid(conversation_id), parse_uuid(sender_id)

        invalid = cls._invalid_content(content)
        if invalid:
            return invalid

        try:
            with cls.atomic():
                conversation, failure = cls._get_for_participant(conversation_id, sender_id, lock=True)
                if failure:
                    return failure
                message = cls._append_message(conversation, sender_id, content)
        except DatabaseError as e:
            return cls.handle_exception(e, f"send_message conversation={conversation_id}")

        return ServiceResult.success(message)

    @classmethod
    def _append_message(cls, conversation: Conversation, sender_id: uuid.UUID, content: str) -> Message:
        """
        Insert the message and update the conversation row.

        Caller holds the transaction, and the row lock unless the
        conversation was created in this same transaction.
        """
        content = content.strip()
        message = Message.objects.create(
            conversation=conversation,
            sender_id=sender_id,
            content=content,
        )

        recipient_id = conversation.other_participant_id(sender_id)
        recipient_field = Conversation.unread_field_for(conversation.role_of(recipient_id))
        Conversation.objects.filter(pk=conversation.pk).update(
            last_message_preview=content[: MESSAGING_CONFIG.PREVIEW_LENGTH],
            last_message_at=message.created_at,
            updated_at=timezone.now(),
            **{recipient_field: F(recipient_field) + 1},
        )

        transaction.on_commit(lambda: cls._notify(message, recipient_id), robust=True)

        cls.get_logger().debug(
            f"Message {message.pk} sent in conversation {conversation.pk}",
            extra={"conversation_id": str(conversation.pk), "sender_id": str(sender_id)},
        )
        return message

    @classmethod
    def _notify(cls, message: Message, recipient_id: uuid.UUID) -> None:
        get_notification_sink().message_sent(message, recipient_id)

    # -------------------------------------------------------------------------
    # Read state
    # -------------------------------------------------------------------------

    @classmethod
    def mark_read(cls, conversation_id: uuid.UUID, user_id: uuid.UUID) -> ServiceResult[int]:
        """
        Zero the caller's unread counter. Idempotent.

        The other participant's counter is untouched. Unread messages
        authored by the other participant are flagged read in the same
        transaction; the number flagged is returned.

        Error codes:
            NOT_FOUND, NOT_PARTICIPANT, INVALID_INPUT, UNAVAILABLE
        """
        invalid = cls._invalid_ids(conversation_id=conversation_id, user_id=user_id)
        if invalid:
            return invalid
        conversation_id, user_id = parse_uuid(conversation_id), parse_uuid(user_id)

        try:
            with cls.atomic():
                conversation, failure = cls._get_for_participant(conversation_id, user_id, lock=True)
                if failure:
                    return failure

                now = timezone.now()
                counter = Conversation.unread_field_for(conversation.role_of(user_id))
                Conversation.objects.filter(pk=conversation.pk).update(**{counter: 0, "updated_at": now})
                marked = conversation.messages.unread_for_reader(user_id).update(is_read=True, read_at=now)
        except DatabaseError as e:
            return cls.handle_exception(e, f"mark_read conversation={conversation_id}")

        cls.get_logger().debug(
            f"User {user_id} read conversation {conversation_id} ({marked} messages)",
        )
        return ServiceResult.success(marked)

    # -------------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------------

    @classmethod
    def get_conversation(cls, conversation_id: uuid.UUID, user_id: uuid.UUID) -> ServiceResult[ConversationDetail]:
        """
        Conversation detail with the newest messages first.

        Error codes:
            NOT_FOUND, NOT_PARTICIPANT, INVALID_INPUT
        """
        invalid = cls._invalid_ids(conversation_id=conversation_id, user_id=user_id)
        if invalid:
            return invalid
        conversation_id, user_id = parse_uuid(conversation_id), parse_uuid(user_id)

        conversation, failure = cls._get_for_participant(conversation_id, user_id)
        if failure:
            return failure

        messages = list(conversation.messages.newest_first()[: MESSAGING_CONFIG.DETAIL_MESSAGE_LIMIT])
        other_id = conversation.other_participant_id(user_id)
        other_participant = cls._user_summaries([other_id]).get(other_id)

        return ServiceResult.success(
            ConversationDetail(
                conversation=conversation,
                role=conversation.role_of(user_id),
                unread_count=unread_for(conversation, user_id),
                other_participant=other_participant,
                messages=messages,
            )
        )

    @classmethod
    def list_conversations(
        cls,
        user_id: uuid.UUID,
        page: int = 1,
        page_size: int = MESSAGING_CONFIG.DEFAULT_PAGE_SIZE,
        archived: bool = False,
    ) -> ServiceResult[ConversationPage]:
        """
        The caller's conversations, most recently active first.

        archived selects the caller's archived or non-archived set; the
        other side's archive flag has no effect. Conversations without
        messages sort after those with messages.
        """
        invalid = cls._invalid_ids(user_id=user_id)
        if invalid:
            return invalid
        user_id = parse_uuid(user_id)
        page, page_size = cls._normalize_paging(page, page_size, MESSAGING_CONFIG.DEFAULT_PAGE_SIZE)

        queryset = Conversation.objects.visible_to(user_id, archived=archived).with_unread_for(user_id)
        pagination = calculate_pagination(queryset.count(), page, page_size)
        offset = pagination["offset"]
        conversations = list(
            queryset.order_by(
                F("last_message_at").desc(nulls_last=True),
                "-created_at",
                "id",
            )[offset : offset + page_size]
        )

        summaries = cls._user_summaries(
            {conversation.other_participant_id(user_id) for conversation in conversations}
        )
        items = [
            ConversationListItem(
                conversation=conversation,
                role=conversation.role_of(user_id),
                unread_count=conversation.unread_count,
                other_participant=summaries.get(conversation.other_participant_id(user_id)),
            )
            for conversation in conversations
        ]
        return ServiceResult.success(ConversationPage(conversations=items, pagination=pagination))

    @classmethod
    def list_messages(
        cls,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID,
        page: int = 1,
        page_size: int = MESSAGING_CONFIG.DEFAULT_MESSAGE_PAGE_SIZE,
    ) -> ServiceResult[MessagePage]:
        """
        Page through a conversation's messages, newest first.

        Error codes:
            NOT_FOUND, NOT_PARTICIPANT, INVALID_INPUT
        """
        invalid = cls._invalid_ids(conversation_id=conversation_id, user_id=user_id)
        if invalid:
            return invalid
        conversation_id, user_id = parse_uuid(conversation_id), parse_uuid(user_id)
        page, page_size = cls._normalize_paging(page, page_size, MESSAGING_CONFIG.DEFAULT_MESSAGE_PAGE_SIZE)

        conversation, failure = cls._get_for_participant(conversation_id, user_id)
        if failure:
            return failure

        queryset = conversation.messages.newest_first()
        pagination = calculate_pagination(queryset.count(), page, page_size)
        offset = pagination["offset"]
        messages = list(queryset[offset : offset + page_size])
        return ServiceResult.success(MessagePage(messages=messages, pagination=pagination))

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    @classmethod
    def archive(cls, conversation_id: uuid.UUID, user_id: uuid.UUID) -> ServiceResult[Conversation]:
        """Hide the conversation from the caller's default list. Counters are untouched."""
        return cls._set_archived(conversation_id, user_id, archived=True)

    @classmethod
    def unarchive(cls, conversation_id: uuid.UUID, user_id: uuid.UUID) -> ServiceResult[Conversation]:
        return cls._set_archived(conversation_id, user_id, archived=False)

    @classmethod
    def _set_archived(cls, conversation_id, user_id, archived: bool) -> ServiceResult[Conversation]:
        invalid = cls._invalid_ids(conversation_id=conversation_id, user_id=user_id)
        if invalid:
            return invalid
        conversation_id, user_id = parse_uuid(conversation_id), parse_uuid(user_id)

        try:
            with cls.atomic():
                conversation, failure = cls._get_for_participant(conversation_id, user_id, lock=True)
                if failure:
                    return failure

                flag = (
                    "is_archived_by_buyer"
                    if conversation.role_of(user_id) == ParticipantRole.BUYER
                    else "is_archived_by_seller"
                )
                setattr(conversation, flag, archived)
                conversation.save(update_fields=[flag, "updated_at"])
        except DatabaseError as e:
            return cls.handle_exception(e, f"archive conversation={conversation_id}")

        cls.get_logger().info(
            f"Conversation {conversation_id} {'archived' if archived else 'unarchived'} by {user_id}"
        )
        return ServiceResult.success(conversation)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @classmethod
    def _get_for_participant(
        cls,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID,
        lock: bool = False,
    ) -> tuple[Conversation | None, ServiceResult | None]:
        """Load the conversation and check the caller takes part in it."""
        queryset = Conversation.objects.all()
        if lock:
            queryset = queryset.select_for_update()

        try:
            conversation = queryset.get(pk=conversation_id)
        except Conversation.DoesNotExist:
            return None, ServiceResult.failure(
                "Conversation not found",
                error_code=ErrorCode.NOT_FOUND,
            )

        if not conversation.is_participant(user_id):
            return None, ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code=ErrorCode.NOT_PARTICIPANT,
            )
        return conversation, None

    @classmethod
    def _user_summaries(cls, user_ids) -> dict[uuid.UUID, UserSummary]:
        try:
            return get_user_directory().get_user_summaries(user_ids)
        except ExternalServiceError as e:
            cls.get_logger().warning(f"User lookup failed, omitting participant details: {e}")
            return {}

    @classmethod
    def _invalid_ids(cls, **values) -> ServiceResult | None:
        errors = {name: ["Must be a valid UUID."] for name, value in values.items() if parse_uuid(value) is None}
        if errors:
            return ServiceResult.failure(
                "Invalid identifier",
                error_code=ErrorCode.INVALID_INPUT,
                errors=errors,
            )
        return None

    @classmethod
    def _invalid_content(cls, content: str) -> ServiceResult | None:
        if content is not None and not isinstance(content, str):
            return ServiceResult.failure("Message content must be text", error_code=ErrorCode.INVALID_INPUT)

        missing = cls.validate_required(content=content)
        if missing:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code=ErrorCode.INVALID_INPUT,
                errors=missing.errors,
            )

        if len(content.strip()) > MESSAGING_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content cannot exceed {MESSAGING_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code=ErrorCode.INVALID_INPUT,
            )
        return None

    @staticmethod
    def _normalize_paging(page, page_size, default_size: int) -> tuple[int, int]:
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1
        try:
            page_size = int(page_size)
        except (TypeError, ValueError):
            page_size = default_size

        if page < 1:
            page = 1
        if page_size < 1:
            page_size = default_size
        return page, min(page_size, MESSAGING_CONFIG.MAX_PAGE_SIZE)


# =============================================================================
# UnreadAggregator
# =============================================================================


class UnreadAggregator(BaseService):
    """Unread badge data for one user, computed from the per-side counters."""

    @classmethod
    def get_unread_summary(cls, user_id: uuid.UUID) -> ServiceResult[UnreadSummary]:
        """
        Total unread plus the non-zero per-conversation breakdown.

        Archived conversations count: archiving hides a thread, it does
        not acknowledge its messages.
        """
        user_id = parse_uuid(user_id)
        if user_id is None:
            return ServiceResult.failure("Invalid identifier", error_code=ErrorCode.INVALID_INPUT)

        rows = (
            Conversation.objects.for_user(user_id)
            .with_unread_for(user_id)
            .filter(unread_count__gt=0)
            .order_by(F("last_message_at").desc(nulls_last=True), "id")
            .values_list("pk", "unread_count")
        )
        by_conversation = [ConversationUnread(conversation_id=pk, unread=unread) for pk, unread in rows]
        return ServiceResult.success(
            UnreadSummary(
                total_unread=sum(entry.unread for entry in by_conversation),
                by_conversation=by_conversation,
            )
        )
