"""
Interfaces to the systems messaging depends on but does not own.

Protocols:
    ListingDirectory: listing display data snapshotted onto new conversations
    UserDirectory: display data for the other participant
    NotificationSink: told about every committed message

Default implementations:
    HttpListingDirectory: listings service over HTTP, behind a circuit breaker
    ProfileUserDirectory: authentication.User / Profile
    CeleryNotificationSink: enqueues messaging.tasks.send_message_notification

The implementation in use is chosen by dotted path in settings
(MESSAGING_LISTING_DIRECTORY, MESSAGING_USER_DIRECTORY,
MESSAGING_NOTIFICATION_SINK) and loaded on every call, so tests can swap
one with the settings fixture.

All three are best-effort from the service's point of view: a failure is
logged and never aborts a send or a create.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils.module_loading import import_string

from core.circuit_breaker import CircuitBreaker
from core.exceptions import ExternalServiceError
from messaging.models import fit_listing_price, fits_listing_image

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from messaging.models import Message

logger = logging.getLogger(__name__)


# =============================================================================
# Value types
# =============================================================================


@dataclass(frozen=True)
class ListingSummary:
    listing_id: uuid.UUID
    title: str
    cover_image: str | None = None
    price: Decimal | None = None
    status: str = ""


@dataclass(frozen=True)
class UserSummary:
    id: uuid.UUID
    name: str
    avatar_url: str | None = None
    role: str = ""


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class ListingDirectory(Protocol):
    def get_listing_summary(self, listing_id: uuid.UUID) -> ListingSummary | None:
        """
        Return the listing's display data, or None if it does not exist.

        Raises:
            ExternalServiceError: the lookup itself failed
        """
        ...


@runtime_checkable
class UserDirectory(Protocol):
    def get_user_summary(self, user_id: uuid.UUID) -> UserSummary | None: ...

    def get_user_summaries(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, UserSummary]:
        """Bulk variant; unknown IDs are simply absent from the result."""
        ...


@runtime_checkable
class NotificationSink(Protocol):
    def message_sent(self, message: Message, recipient_id: uuid.UUID) -> None: ...


# =============================================================================
# Listings service
# =============================================================================


class HttpListingDirectory:
    """
    Reads GET {LISTINGS_SERVICE_URL}/api/listings/{id}.

    Expected body: {"success": true, "data": {"title", "price", "status",
    "images": [{"imageUrl", "isCover", "sortOrder"}]}}. A 404 means the
    listing does not exist; any other failure raises ExternalServiceError
    and counts against the circuit.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        if base_url is None:
            base_url = settings.LISTINGS_SERVICE_URL
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.LISTINGS_SERVICE_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.circuit = CircuitBreaker(
            "listings-service",
            failure_threshold=settings.LISTINGS_CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout=settings.LISTINGS_CIRCUIT_RECOVERY_TIMEOUT,
            failure_exceptions=(requests.RequestException,),
        )

    def get_listing_summary(self, listing_id: uuid.UUID) -> ListingSummary | None:
        if not self.base_url:
            logger.debug("LISTINGS_SERVICE_URL not set, skipping listing lookup")
            return None

        url = f"{self.base_url}/api/listings/{listing_id}"
        try:
            with self.circuit.call():
                response = self.session.get(
                    url,
                    timeout=self.timeout,
                    headers={"Accept": "application/json"},
                )
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                payload = response.json()
        except requests.RequestException as e:
            raise ExternalServiceError(
                f"Listing lookup failed: {e}",
                error_code="LISTINGS_UNAVAILABLE",
                details={"listing_id": str(listing_id)},
            ) from e

        return self._parse(listing_id, payload)

    @staticmethod
    def _parse(listing_id: uuid.UUID, payload) -> ListingSummary:
        data = payload.get("data", payload) if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ExternalServiceError(
                "Listing response has no data object",
                error_code="LISTINGS_BAD_RESPONSE",
                details={"listing_id": str(listing_id)},
            )

        price = data.get("price")
        if price is not None:
            try:
                price = Decimal(str(price))
            except InvalidOperation as e:
                raise ExternalServiceError(
                    f"Listing price is not a number: {price!r}",
                    error_code="LISTINGS_BAD_RESPONSE",
                    details={"listing_id": str(listing_id)},
                ) from e
            fitted = fit_listing_price(price)
            if fitted is None:
                logger.warning(
                    f"Listing {listing_id} price {price} cannot be stored, dropping it",
                    extra={"listing_id": str(listing_id)},
                )
            price = fitted

        cover_image = _cover_image(data.get("images") or [])
        if not fits_listing_image(cover_image):
            logger.warning(
                f"Listing {listing_id} cover image URL is too long, dropping it",
                extra={"listing_id": str(listing_id)},
            )
            cover_image = None

        return ListingSummary(
            listing_id=listing_id,
            title=str(data.get("title") or ""),
            cover_image=cover_image,
            price=price,
            status=str(data.get("status") or ""),
        )


def _cover_image(images: list) -> str | None:
    """URL of the image flagged as cover, else the first by sortOrder."""
    images = [image for image in images if isinstance(image, dict) and image.get("imageUrl")]
    if not images:
        return None
    for image in images:
        if image.get("isCover"):
            return image["imageUrl"]
    return min(images, key=lambda image: image.get("sortOrder") or 0)["imageUrl"]


# =============================================================================
# Users
# =============================================================================


class ProfileUserDirectory:
    """User summaries from the local User/Profile tables."""

    def get_user_summary(self, user_id: uuid.UUID) -> UserSummary | None:
        return self.get_user_summaries([user_id]).get(user_id)

    def get_user_summaries(self, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, UserSummary]:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}

        users = get_user_model().objects.filter(pk__in=ids).select_related("profile")
        return {user.pk: self._summarize(user) for user in users}

    @staticmethod
    def _summarize(user) -> UserSummary:
        profile = getattr(user, "profile", None)
        avatar_url = None
        if profile is not None and profile.profile_picture:
            avatar_url = profile.profile_picture.url
        return UserSummary(
            id=user.pk,
            name=user.get_full_name(),
            avatar_url=avatar_url,
            role=user.role,
        )


# =============================================================================
# Notifications
# =============================================================================


class CeleryNotificationSink:
    """Hands new-message events to a Celery worker."""

    def message_sent(self, message: Message, recipient_id: uuid.UUID) -> None:
        from messaging.tasks import send_message_notification

        send_message_notification.delay(message.pk, str(recipient_id))
        logger.debug(
            f"Queued notification for message {message.pk}",
            extra={"message_id": message.pk, "recipient_id": str(recipient_id)},
        )


# =============================================================================
# Lookup
# =============================================================================


def get_listing_directory() -> ListingDirectory:
    return import_string(settings.MESSAGING_LISTING_DIRECTORY)()


def get_user_directory() -> UserDirectory:
    return import_string(settings.MESSAGING_USER_DIRECTORY)()


def get_notification_sink() -> NotificationSink:
    return import_string(settings.MESSAGING_NOTIFICATION_SINK)()
