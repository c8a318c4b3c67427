"""
Abstract model mixins.

UUIDPrimaryKeyMixin: UUID primary key generated in Python, so the ID is
known before the INSERT and is safe to expose to clients in URLs.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Replace the auto-increment primary key with a UUID4.

    Usage:
        class Conversation(UUIDPrimaryKeyMixin, BaseModel):
            ...
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID4)",
    )

    class Meta:
        abstract = True
