"""
Django admin configuration for messaging models.

Provides admin interfaces for:
- Conversation inspection (counters and archive flags are read-only)
- Message moderation
"""

from django.contrib import admin

from messaging.models import Conversation, Message


class MessageInline(admin.TabularInline):
    """Inline display of messages in conversation admin."""

    model = Message
    extra = 0
    fields = ["sender_id", "content", "is_read", "read_at", "created_at"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]
    show_change_link = True


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "listing_title",
        "buyer_id",
        "seller_id",
        "buyer_unread_count",
        "seller_unread_count",
        "last_message_at",
        "created_at",
    ]
    list_filter = ["is_archived_by_buyer", "is_archived_by_seller", "created_at"]
    search_fields = ["id", "listing_id", "buyer_id", "seller_id", "listing_title"]
    readonly_fields = [
        "buyer_unread_count",
        "seller_unread_count",
        "last_message_preview",
        "last_message_at",
        "created_at",
        "updated_at",
    ]
    inlines = [MessageInline]
    ordering = ["-created_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "conversation", "sender_id", "content_preview", "is_read", "created_at"]
    list_filter = ["is_read", "created_at"]
    search_fields = ["content", "sender_id", "conversation__id"]
    readonly_fields = ["conversation", "sender_id", "created_at", "updated_at", "read_at"]
    raw_id_fields = ["conversation"]
    ordering = ["-created_at"]

    @admin.display(description="Content")
    def content_preview(self, obj):
        """Show truncated content in list view."""
        if len(obj.content) > 50:
            return obj.content[:50] + "..."
        return obj.content
