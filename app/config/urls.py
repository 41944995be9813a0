"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email/password)
        token/refresh/             - Refresh access token
    /api/v1/events/                - Event membership endpoints
        {id}/team/                 - Accept a volunteer into the team (manager)
    /api/v1/messaging/             - Messaging endpoints
        send/                      - Send a direct or group message
        reply/                     - Reply to a single user
        senders/                   - Inbox summary grouped by sender
        inbox/                     - All received messages, newest first
        messages/{user_id}/        - Conversation with a user (marks it read)
        messages/{user_id}/read/   - Mark a conversation read
        unread/{user_id}/          - Unread count for a conversation
        events/                    - Event chat list
        events/{id}/messages/      - Event chat history / broadcast

WebSocket:
    /ws/realtime/                  - Realtime push channel (see messaging.routing)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("events/", include("events.urls")),
    path("messaging/", include("messaging.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Volunteer Hub Admin"
admin.site.site_title = "Volunteer Hub"
admin.site.index_title = "Events and messaging"
