"""
Root URL configuration.

URL Structure:
    /                              - ReDoc API documentation
    /schema/                       - OpenAPI schema
    /admin/                        - Django admin
    /health/                       - Health check (load balancers, Docker)
    /api/v1/auth/                  - JWT token obtain/refresh/verify
    /api/v1/messaging/             - Messaging endpoints
        conversations/                      - List / start a conversation
        conversations/{id}/                 - Conversation detail with latest messages
        conversations/{id}/messages/        - List / send messages
        conversations/{id}/read/            - Mark the conversation read (PUT)
        conversations/{id}/archive/         - Archive (POST) / unarchive (DELETE)
        unread-count/                       - Unread totals for the caller
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("messaging/", include("messaging.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Messaging Admin"
admin.site.site_title = "Messaging Admin"
