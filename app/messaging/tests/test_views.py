"""
Tests for messaging API views.

This module tests the HTTP surface:
- ConversationViewSet: list, create, retrieve, messages, read, archive
- UnreadCountView

Tests focus on observable HTTP behavior:
    - Response status codes and error codes
    - Response body structure
    - Database state changes
    - Authentication enforcement
"""

import uuid

import pytest
from rest_framework import status

from messaging.constants import ErrorCode
from messaging.models import Conversation
from messaging.services import MessagingService
from messaging.tests.conftest import LISTING_ID
from messaging.tests.factories import ConversationFactory


# =============================================================================
# URL Constants
# =============================================================================


CONVERSATIONS_URL = "/api/v1/messaging/conversations/"
UNREAD_COUNT_URL = "/api/v1/messaging/unread-count/"


def conversation_detail_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/"


def messages_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/messages/"


def read_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/read/"


def archive_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/archive/"


def create_payload(seller, content="Hi"):
    return {"listing_id": str(LISTING_ID), "seller_id": str(seller.pk), "initial_message": content}


# =============================================================================
# Create
# =============================================================================


@pytest.mark.django_db
class TestCreateConversation:
    def test_creates_conversation(self, buyer_client, seller):
        response = buyer_client.post(CONVERSATIONS_URL, create_payload(seller), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["is_new"] is True
        assert response.data["message"]["content"] == "Hi"
        conversation = Conversation.objects.get(pk=response.data["conversation_id"])
        assert conversation.seller_unread_count == 1

    def test_existing_conversation_returns_200(self, buyer_client, seller):
        first = buyer_client.post(CONVERSATIONS_URL, create_payload(seller), format="json")

        second = buyer_client.post(CONVERSATIONS_URL, create_payload(seller, "Hello again"), format="json")

        assert second.status_code == status.HTTP_200_OK
        assert second.data["is_new"] is False
        assert second.data["conversation_id"] == first.data["conversation_id"]

    def test_seller_is_notified(
        self, buyer_client, seller, django_capture_on_commit_callbacks, notifications
    ):
        with django_capture_on_commit_callbacks(execute=True):
            buyer_client.post(CONVERSATIONS_URL, create_payload(seller), format="json")

        assert [recipient for _, recipient in notifications] == [seller.pk]

    def test_self_conversation_rejected(self, buyer_client, buyer):
        response = buyer_client.post(CONVERSATIONS_URL, create_payload(buyer), format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == ErrorCode.SELF_CONVERSATION

    def test_invalid_payload_rejected(self, buyer_client, seller):
        payload = create_payload(seller)
        payload["listing_id"] = "not-a-uuid"
        payload["initial_message"] = ""

        response = buyer_client.post(CONVERSATIONS_URL, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "listing_id" in response.data
        assert "initial_message" in response.data
        assert not Conversation.objects.exists()

    def test_requires_authentication(self, api_client, seller):
        response = api_client.post(CONVERSATIONS_URL, create_payload(seller), format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# List / retrieve
# =============================================================================


@pytest.mark.django_db
class TestListConversations:
    def test_lists_callers_conversations(self, seller_client, buyer_client, seller):
        buyer_client.post(CONVERSATIONS_URL, create_payload(seller), format="json")

        response = seller_client.get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_200_OK
        item = response.data["conversations"][0]
        assert item["role"] == "seller"
        assert item["unread_count"] == 1
        assert item["other_participant"]["name"] == "Bea Buyer"
        assert item["listing"] == {
            "id": str(LISTING_ID),
            "title": "2019 Honda Civic",
            "image": "https://cdn.example.com/civic.jpg",
            "price": "18500.00",
        }
        assert item["last_message_preview"] == "Hi"
        assert item["is_archived"] is False
        assert response.data["pagination"]["total"] == 1

    def test_archived_filter(self, buyer_client, conversation, buyer):
        MessagingService.archive(conversation.pk, buyer.pk)

        default = buyer_client.get(CONVERSATIONS_URL)
        archived = buyer_client.get(CONVERSATIONS_URL, {"archived": "true"})

        assert default.data["conversations"] == []
        assert [item["id"] for item in archived.data["conversations"]] == [str(conversation.pk)]
        assert archived.data["conversations"][0]["is_archived"] is True

    def test_pagination_params(self, buyer_client, buyer):
        ConversationFactory.create_batch(3, buyer_id=buyer.pk)

        response = buyer_client.get(CONVERSATIONS_URL, {"page": 2, "page_size": 2})

        assert len(response.data["conversations"]) == 1
        assert response.data["pagination"]["has_previous"] is True
        assert response.data["pagination"]["has_next"] is False


@pytest.mark.django_db
class TestRetrieveConversation:
    def test_returns_detail_with_messages(self, buyer_client, conversation, buyer, seller):
        MessagingService.send_message(conversation.pk, buyer.pk, "Hi")
        MessagingService.send_message(conversation.pk, seller.pk, "Hello")

        response = buyer_client.get(conversation_detail_url(conversation.pk))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(conversation.pk)
        assert response.data["role"] == "buyer"
        assert response.data["unread_count"] == 1
        assert [m["content"] for m in response.data["messages"]] == ["Hello", "Hi"]
        assert response.data["other_participant"]["name"] == "Sam Seller"

    def test_outsider_forbidden(self, outsider_client, conversation):
        response = outsider_client.get(conversation_detail_url(conversation.pk))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == ErrorCode.NOT_PARTICIPANT

    def test_unknown_conversation(self, buyer_client):
        response = buyer_client.get(conversation_detail_url(uuid.uuid4()))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == ErrorCode.NOT_FOUND


# =============================================================================
# Messages
# =============================================================================


@pytest.mark.django_db
class TestMessages:
    def test_send_message(self, seller_client, conversation, seller):
        response = seller_client.post(messages_url(conversation.pk), {"content": "Hello"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["sender_id"] == str(seller.pk)
        assert response.data["conversation_id"] == str(conversation.pk)
        assert response.data["is_read"] is False
        assert Conversation.objects.get(pk=conversation.pk).buyer_unread_count == 1

    def test_outsider_cannot_send(self, outsider_client, conversation):
        response = outsider_client.post(messages_url(conversation.pk), {"content": "Hi"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not conversation.messages.exists()

    def test_blank_content_rejected(self, buyer_client, conversation):
        response = buyer_client.post(messages_url(conversation.pk), {"content": "   "}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_messages(self, buyer_client, conversation, buyer):
        for n in range(3):
            MessagingService.send_message(conversation.pk, buyer.pk, f"message {n}")

        response = buyer_client.get(messages_url(conversation.pk), {"page_size": 2})

        assert response.status_code == status.HTTP_200_OK
        assert [m["content"] for m in response.data["messages"]] == ["message 2", "message 1"]
        assert response.data["pagination"]["total"] == 3


# =============================================================================
# Read / archive
# =============================================================================


@pytest.mark.django_db
class TestMarkRead:
    def test_mark_read(self, buyer_client, conversation, seller):
        MessagingService.send_message(conversation.pk, seller.pk, "Hello")

        response = buyer_client.put(read_url(conversation.pk))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "read", "messages_marked": 1}
        assert Conversation.objects.get(pk=conversation.pk).buyer_unread_count == 0

    def test_outsider_forbidden(self, outsider_client, conversation):
        response = outsider_client.put(read_url(conversation.pk))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_post_not_allowed(self, buyer_client, conversation):
        response = buyer_client.post(read_url(conversation.pk))

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


@pytest.mark.django_db
class TestArchive:
    def test_archive_and_unarchive(self, seller_client, conversation):
        archived = seller_client.post(archive_url(conversation.pk))
        assert archived.status_code == status.HTTP_200_OK
        assert Conversation.objects.get(pk=conversation.pk).is_archived_by_seller

        restored = seller_client.delete(archive_url(conversation.pk))
        assert restored.status_code == status.HTTP_200_OK
        assert restored.data == {"status": "unarchived"}
        assert not Conversation.objects.get(pk=conversation.pk).is_archived_by_seller


# =============================================================================
# Unread count
# =============================================================================


@pytest.mark.django_db
class TestUnreadCount:
    def test_returns_total_and_breakdown(self, seller_client, conversation, buyer):
        MessagingService.send_message(conversation.pk, buyer.pk, "Hi")
        MessagingService.send_message(conversation.pk, buyer.pk, "Hello?")

        response = seller_client.get(UNREAD_COUNT_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total_unread"] == 2
        assert response.data["by_conversation"] == [{"conversation_id": str(conversation.pk), "unread": 2}]

    def test_zero_for_new_user(self, outsider_client):
        response = outsider_client.get(UNREAD_COUNT_URL)

        assert response.data == {"total_unread": 0, "by_conversation": []}

    def test_requires_authentication(self, api_client):
        response = api_client.get(UNREAD_COUNT_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
