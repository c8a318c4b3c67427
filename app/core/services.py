"""
Service layer building blocks.

- ServiceResult: success/failure wrapper returned by every service call
- BaseService: logger, transaction and exception helpers shared by services

Expected failures (a caller who is not a participant, blank content) are
returned as ServiceResult.failure with a machine-readable error_code.
Unexpected failures (storage errors, bugs) are exceptions; services that
want to surface them as results go through BaseService.handle_exception.

Usage:
    from core.services import BaseService, ServiceResult

    class ArchiveService(BaseService):
        @classmethod
        def archive(cls, conversation_id, user_id) -> ServiceResult[bool]:
            with cls.atomic():
                ...
            cls.get_logger().info(f"Archived {conversation_id} for {user_id}")
            return ServiceResult.success(True)

    result = ArchiveService.archive(conversation_id, request.user.pk)
    if not result:
        return Response({"error": result.error, "error_code": result.error_code}, status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import DatabaseError, transaction

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service operation.

    Attributes:
        success: Whether the operation succeeded
        data: Payload on success
        error: Human-readable message on failure
        error_code: Machine-readable code the view maps to an HTTP status
        errors: Optional field-level details for input failures
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Build a failed result.

        Example:
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        """
        return cls(success=False, error=error, error_code=error_code, errors=errors)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """Build a failed result from a caught exception (code defaults to the class name)."""
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def map(self, func: Callable[[T], U]) -> ServiceResult[U]:
        """Apply func to the payload of a successful result; failures pass through."""
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore[return-value]

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only. Use ServiceResult for expected
    failures and let unexpected exceptions propagate unless the caller
    has a well-defined degraded answer for them.
    """

    # Error code used when a storage transaction fails
    UNAVAILABLE = "UNAVAILABLE"

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls, savepoint: bool = True) -> Generator[None, None, None]:
        """
        Run the block in a database transaction.

        Nested use creates a savepoint, so an IntegrityError caught
        around an inner block leaves the outer transaction usable.
        """
        with transaction.atomic(savepoint=savepoint):
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log an exception and convert it to a failed ServiceResult.

        DatabaseError maps to UNAVAILABLE so callers can tell a storage
        outage from a business-rule failure.
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)

        if isinstance(exc, DatabaseError):
            return ServiceResult.failure(
                "Storage is temporarily unavailable, please retry",
                error_code=cls.UNAVAILABLE,
            )
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Fail when any keyword value is None or a blank string.

        Returns None when everything is present.
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="INVALID_INPUT",
                errors=errors,
            )
        return None
