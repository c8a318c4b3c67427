"""
Celery tasks for the messaging app.

This module defines async tasks for:
- New-message push notifications

Related files:
    - collaborators.py: CeleryNotificationSink enqueues these tasks
    - services.py: MessagingService

Usage:
    from messaging.tasks import send_message_notification

    send_message_notification.delay(message_id, recipient_id)
"""

import logging

import requests
from celery import shared_task
from django.conf import settings

from messaging.constants import MESSAGING_CONFIG

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "new_message"
NOTIFICATION_CHANNEL = "push"


@shared_task(
    bind=True,
    autoretry_for=(requests.RequestException,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_message_notification(self, message_id: int, recipient_id: str) -> bool:
    """
    Deliver a new-message notification to the notifications service.

    Runs after the sending transaction has committed, so the message
    exists unless it was deleted in the meantime.

    Args:
        message_id: ID of the message that was sent
        recipient_id: UUID of the participant to notify

    Returns:
        True if the notifications service accepted the event
    """
    from messaging.models import Message

    try:
        message = Message.objects.get(pk=message_id)
    except Message.DoesNotExist:
        logger.warning(f"Message {message_id} not found, skipping notification")
        return False

    url = settings.NOTIFICATIONS_SERVICE_URL
    if not url:
        logger.debug(f"NOTIFICATIONS_SERVICE_URL not set, dropping notification for message {message_id}")
        return False

    payload = {
        "user_id": recipient_id,
        "type": NOTIFICATION_TYPE,
        "channel": NOTIFICATION_CHANNEL,
        "data": {
            "conversation_id": str(message.conversation_id),
            "message_id": message.pk,
            "sender_id": str(message.sender_id),
            "preview": message.content[: MESSAGING_CONFIG.PREVIEW_LENGTH],
        },
    }
    response = requests.post(
        url,
        json=payload,
        timeout=settings.NOTIFICATIONS_SERVICE_TIMEOUT_SECONDS,
    )
    response.raise_for_status()

    logger.info(
        f"Notification sent for message {message_id}",
        extra={"message_id": message_id, "recipient_id": recipient_id},
    )
    return True
