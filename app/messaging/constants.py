"""
Limits and defaults for the messaging module.

Import example:
    from messaging.constants import MESSAGING_CONFIG, ErrorCode
"""

from typing import Final


class MESSAGING_CONFIG:
    """Configuration for conversations and messages."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    PREVIEW_LENGTH: Final[int] = 255

    # Conversation detail embeds this many of the newest messages
    DETAIL_MESSAGE_LIMIT: Final[int] = 50

    # Offset pagination
    DEFAULT_PAGE_SIZE: Final[int] = 20
    DEFAULT_MESSAGE_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100


class ErrorCode:
    """Service error codes; views map them to HTTP statuses."""

    NOT_FOUND: Final[str] = "NOT_FOUND"
    NOT_PARTICIPANT: Final[str] = "NOT_PARTICIPANT"
    SELF_CONVERSATION: Final[str] = "SELF_CONVERSATION"
    INVALID_INPUT: Final[str] = "INVALID_INPUT"
    CONFLICT: Final[str] = "CONFLICT"
    UNAVAILABLE: Final[str] = "UNAVAILABLE"
