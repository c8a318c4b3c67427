"""
Small infrastructure helpers with no domain knowledge.

Usage:
    from core.helpers import calculate_pagination, parse_uuid

    conversation_id = parse_uuid(raw)
    meta = calculate_pagination(total=41, page=3, per_page=20)
"""

from __future__ import annotations

import math
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


def parse_uuid(value: Any) -> uuid.UUID | None:
    """
    Coerce value to a UUID.

    Returns None for anything that is not a UUID or its string form,
    including None and integers.
    """
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Offset pagination metadata.

    The page is echoed back as requested (a page past the end is simply
    empty) so the response always describes the slice that was queried.

    Example:
        calculate_pagination(total=41, page=3, per_page=20)
        # {"total": 41, "page": 3, "per_page": 20, "total_pages": 3,
        #  "has_next": False, "has_previous": True, "offset": 40}
    """
    total_pages = math.ceil(total / per_page) if per_page > 0 else 0
    page = max(1, page)

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
        "offset": (page - 1) * per_page,
    }
