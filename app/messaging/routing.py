"""
WebSocket URL routing for the messaging application.

URL Patterns:
    ws/realtime/ - One socket per client session; the personal room is
        joined on connect, event rooms on request

Authentication:
    JWT access token as ?token=<jwt> or the "jwt, <token>" subprotocol,
    resolved by messaging.middleware.JWTAuthMiddleware.
"""

from django.urls import path

from messaging import consumers

websocket_urlpatterns = [
    path(
        "ws/realtime/",
        consumers.RealtimeConsumer.as_asgi(),
    ),
]
