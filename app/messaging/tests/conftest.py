"""
Test configuration and fixtures for messaging tests.

This module provides:
- buyer / seller / outsider users
- A conversation between buyer and seller about a listing
- Collaborator doubles swapped in through settings
- API client helpers for authenticated requests

Usage:
    def test_example(conversation, buyer_client):
        response = buyer_client.get(f"/api/v1/messaging/conversations/{conversation.id}/")
        assert response.status_code == 200
"""

import uuid
from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import SellerFactory, UserFactory
from messaging.collaborators import ListingSummary
from messaging.tests.factories import ConversationFactory

LISTING_ID = uuid.UUID("7d9f3c2a-1b4e-4f6a-9c8d-2e5b7a1f0c3d")


# =============================================================================
# Collaborator doubles
# =============================================================================


class StubListingDirectory:
    """Returns a fixed listing; set `error` to make lookups fail."""

    listing = ListingSummary(
        listing_id=LISTING_ID,
        title="2019 Honda Civic",
        cover_image="https://cdn.example.com/civic.jpg",
        price=Decimal("18500.00"),
        status="active",
    )
    error = None
    calls = []

    def get_listing_summary(self, listing_id):
        type(self).calls.append(listing_id)
        if type(self).error is not None:
            raise type(self).error
        return type(self).listing


class RecordingNotificationSink:
    """Collects (message, recipient_id) pairs instead of enqueuing tasks."""

    sent = []

    def message_sent(self, message, recipient_id):
        type(self).sent.append((message, recipient_id))


@pytest.fixture(autouse=True)
def collaborators(settings):
    """Route every collaborator lookup to the in-process doubles."""
    StubListingDirectory.error = None
    StubListingDirectory.calls = []
    RecordingNotificationSink.sent = []
    settings.MESSAGING_LISTING_DIRECTORY = "messaging.tests.conftest.StubListingDirectory"
    settings.MESSAGING_NOTIFICATION_SINK = "messaging.tests.conftest.RecordingNotificationSink"
    settings.MESSAGING_USER_DIRECTORY = "messaging.collaborators.ProfileUserDirectory"


@pytest.fixture
def listing_directory():
    return StubListingDirectory


@pytest.fixture
def notifications():
    """List of (message, recipient_id) delivered after commit."""
    return RecordingNotificationSink.sent


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def buyer(db):
    return UserFactory(first_name="Bea", last_name="Buyer")


@pytest.fixture
def seller(db):
    return SellerFactory(first_name="Sam", last_name="Seller")


@pytest.fixture
def outsider(db):
    """A user who takes part in no test conversation."""
    return UserFactory()


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(db, buyer, seller):
    """An empty conversation between buyer and seller about LISTING_ID."""
    return ConversationFactory(
        listing_id=LISTING_ID,
        buyer_id=buyer.pk,
        seller_id=seller.pk,
        listing_title="2019 Honda Civic",
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def buyer_client(authenticated_client_factory, buyer):
    return authenticated_client_factory(buyer)


@pytest.fixture
def seller_client(authenticated_client_factory, seller):
    return authenticated_client_factory(seller)


@pytest.fixture
def outsider_client(authenticated_client_factory, outsider):
    return authenticated_client_factory(outsider)
