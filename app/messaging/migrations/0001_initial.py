import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "listing_id",
                    models.UUIDField(
                        blank=True,
                        db_index=True,
                        help_text="Listing this conversation is about (owned by the listings service)",
                        null=True,
                    ),
                ),
                (
                    "buyer_id",
                    models.UUIDField(help_text="User who started the conversation as the buyer"),
                ),
                (
                    "seller_id",
                    models.UUIDField(help_text="User selling the listing"),
                ),
                (
                    "listing_title",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Listing title at conversation creation",
                        max_length=255,
                    ),
                ),
                (
                    "listing_image",
                    models.URLField(
                        blank=True,
                        help_text="Listing cover image URL at conversation creation",
                        max_length=1024,
                        null=True,
                    ),
                ),
                (
                    "listing_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Listing price at conversation creation",
                        max_digits=14,
                        null=True,
                    ),
                ),
                (
                    "buyer_unread_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Messages from the seller not yet read by the buyer",
                    ),
                ),
                (
                    "seller_unread_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Messages from the buyer not yet read by the seller",
                    ),
                ),
                (
                    "last_message_preview",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Truncated content of the most recent message",
                        max_length=255,
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Timestamp of the most recent message (for sorting conversation lists)",
                        null=True,
                    ),
                ),
                (
                    "is_archived_by_buyer",
                    models.BooleanField(
                        default=False,
                        help_text="Hidden from the buyer's default conversation list",
                    ),
                ),
                (
                    "is_archived_by_seller",
                    models.BooleanField(
                        default=False,
                        help_text="Hidden from the seller's default conversation list",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_conversation",
                "ordering": ["-last_message_at", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["buyer_id", "-last_message_at"],
                        name="msg_conv_buyer_recent_idx",
                    ),
                    models.Index(
                        fields=["seller_id", "-last_message_at"],
                        name="msg_conv_seller_recent_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("listing_id", "buyer_id", "seller_id"),
                        name="unique_conversation_per_listing_pair",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("listing_id__isnull", True)),
                        fields=("buyer_id", "seller_id"),
                        name="unique_conversation_per_pair_without_listing",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("buyer_id", models.F("seller_id")), _negated=True),
                        name="conversation_buyer_not_seller",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("buyer_unread_count__gte", 0),
                            ("seller_unread_count__gte", 0),
                        ),
                        name="conversation_unread_counts_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "sender_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="Participant who authored the message",
                    ),
                ),
                ("content", models.TextField(help_text="Message text")),
                (
                    "is_read",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the recipient has marked the conversation read since this arrived",
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the recipient marked this message read",
                        null=True,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="messaging.conversation",
                    ),
                ),
            ],
            options={
                "db_table": "messaging_message",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "-created_at", "-id"],
                        name="msg_message_conv_order_idx",
                    ),
                    models.Index(
                        condition=models.Q(("is_read", False)),
                        fields=["conversation", "is_read"],
                        name="msg_message_conv_unread_idx",
                    ),
                ],
            },
        ),
    ]
