"""
URL configuration for the messaging API.

URL Structure:
    /conversations/                          GET, POST
    /conversations/{id}/                     GET
    /conversations/{id}/messages/            GET, POST
    /conversations/{id}/read/                PUT
    /conversations/{id}/archive/             POST, DELETE
    /unread-count/                           GET

All URLs are prefixed with /api/v1/messaging/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from messaging.views import ConversationViewSet, UnreadCountView

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "messaging"

urlpatterns = [
    path("", include(router.urls)),
    path("unread-count/", UnreadCountView.as_view(), name="unread-count"),
]
