"""
Application exception hierarchy.

Exceptions are for unexpected conditions at infrastructure boundaries
(an upstream service is down, returned garbage, or timed out). Expected
business failures go through core.services.ServiceResult instead.

Hierarchy:
    BaseApplicationError
    └── ExternalServiceError - upstream HTTP services and brokers

Usage:
    from core.exceptions import ExternalServiceError

    raise ExternalServiceError(
        "Listings service returned 500",
        error_code="LISTINGS_UNAVAILABLE",
        details={"listing_id": str(listing_id)},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception carrying a machine-readable code and context details.

    Attributes:
        message: Human-readable description
        error_code: Code for logs and API bodies
        details: Extra context (identifiers, upstream status, ...)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ExternalServiceError(BaseApplicationError):
    """
    An upstream service call failed (timeout, connection error, 5xx,
    malformed payload or an open circuit).

    Callers that can degrade (cached listing fields, notifications)
    catch it and log; nothing in the messaging core retries on it.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
