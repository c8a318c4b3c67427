"""
Serializers for the messaging API.

Input:
    ConversationCreateSerializer: start a conversation about a listing
    MessageCreateSerializer: send a message
    ConversationListQuerySerializer / PageQuerySerializer: query parameters

Output:
    MessageSerializer
    ConversationListItemSerializer, ConversationDetailSerializer
    ConversationCreatedSerializer
    UnreadSummarySerializer

Output serializers read the result dataclasses from messaging.services;
everything caller-relative (role, unread_count, archived) is computed
there, never stored.
"""

from __future__ import annotations

from rest_framework import serializers

from messaging.constants import MESSAGING_CONFIG
from messaging.models import Message, ParticipantRole


# =============================================================================
# Input
# =============================================================================


class ConversationCreateSerializer(serializers.Serializer):
    listing_id = serializers.UUIDField()
    seller_id = serializers.UUIDField()
    initial_message = serializers.CharField(max_length=MESSAGING_CONFIG.MAX_CONTENT_LENGTH)


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=MESSAGING_CONFIG.MAX_CONTENT_LENGTH)


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1)
    page_size = serializers.IntegerField(required=False, default=MESSAGING_CONFIG.DEFAULT_MESSAGE_PAGE_SIZE)


class ConversationListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1)
    page_size = serializers.IntegerField(required=False, default=MESSAGING_CONFIG.DEFAULT_PAGE_SIZE)
    archived = serializers.BooleanField(required=False, default=False)


# =============================================================================
# Output
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    conversation_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender_id",
            "content",
            "is_read",
            "read_at",
            "created_at",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    avatar_url = serializers.CharField(allow_null=True)
    role = serializers.CharField()


class ListingSnapshotSerializer(serializers.Serializer):
    """Listing fields cached on the conversation at creation."""

    id = serializers.UUIDField(source="listing_id", allow_null=True)
    title = serializers.CharField(source="listing_title")
    image = serializers.CharField(source="listing_image", allow_null=True)
    price = serializers.DecimalField(source="listing_price", max_digits=14, decimal_places=2, allow_null=True)


class ConversationListItemSerializer(serializers.Serializer):
    """A conversation from the caller's point of view."""

    id = serializers.UUIDField(source="conversation.id")
    listing = ListingSnapshotSerializer(source="conversation")
    role = serializers.ChoiceField(choices=ParticipantRole.choices)
    unread_count = serializers.IntegerField()
    other_participant = UserSummarySerializer(allow_null=True)
    last_message_preview = serializers.CharField(source="conversation.last_message_preview")
    last_message_at = serializers.DateTimeField(source="conversation.last_message_at", allow_null=True)
    is_archived = serializers.SerializerMethodField()
    created_at = serializers.DateTimeField(source="conversation.created_at")

    def get_is_archived(self, obj) -> bool:
        if obj.role == ParticipantRole.BUYER:
            return obj.conversation.is_archived_by_buyer
        return obj.conversation.is_archived_by_seller


class ConversationDetailSerializer(ConversationListItemSerializer):
    messages = MessageSerializer(many=True)


class PaginationSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    per_page = serializers.IntegerField()
    total_pages = serializers.IntegerField()
    has_next = serializers.BooleanField()
    has_previous = serializers.BooleanField()


class ConversationPageSerializer(serializers.Serializer):
    conversations = ConversationListItemSerializer(many=True)
    pagination = PaginationSerializer()


class MessagePageSerializer(serializers.Serializer):
    messages = MessageSerializer(many=True)
    pagination = PaginationSerializer()


class ConversationCreatedSerializer(serializers.Serializer):
    conversation_id = serializers.UUIDField()
    is_new = serializers.BooleanField()
    message = MessageSerializer()


class ConversationUnreadSerializer(serializers.Serializer):
    conversation_id = serializers.UUIDField()
    unread = serializers.IntegerField()


class UnreadSummarySerializer(serializers.Serializer):
    total_unread = serializers.IntegerField()
    by_conversation = ConversationUnreadSerializer(many=True)
