"""
Constants and configuration for the messaging module.

This module centralizes configuration values for:
- Message content limits
- Realtime room naming and registry keys
- Wire event names pushed to clients

Tunables that differ per deployment (room backend, broadcast retries)
live in settings.MESSAGING.

Import example:
    from messaging.constants import MESSAGE_CONFIG, ROOM_CONFIG, PushEvent
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MAX_RECIPIENTS: Final[int] = 500
    MAX_MEDIA_URL_LENGTH: Final[int] = 2048


# =============================================================================
# Room Registry Configuration
# =============================================================================


class ROOM_CONFIG:
    """Configuration for the presence/room registry."""

    # Room key namespaces; user and event ids never share a key
    USER_ROOM_PREFIX: Final[str] = "user"
    EVENT_ROOM_PREFIX: Final[str] = "event"

    # Redis key prefixes
    KEY_PREFIX_ROOM: Final[str] = "presence:room"
    KEY_PREFIX_CONNECTION: Final[str] = "presence:conn"

    # Redis entries expire unless refreshed; workers that die without
    # running disconnect drop out after this long
    ROOM_TTL_SECONDS: Final[int] = 90

    # How often a live socket refreshes its entries (well under the TTL)
    HEARTBEAT_INTERVAL_SECONDS: Final[int] = 30

    # Lock stripes for the in-memory backend
    LOCK_STRIPES: Final[int] = 64


# =============================================================================
# Push Events
# =============================================================================


class PushEvent:
    """Event names on the realtime wire."""

    RECEIVE_MESSAGE: Final[str] = "receiveMessage"
    MESSAGE_READ: Final[str] = "messageRead"
    ERROR: Final[str] = "error"

    # Channel layer message type handled by RealtimeConsumer.push_event
    LAYER_TYPE: Final[str] = "push.event"


class ClientAction:
    """Actions a client can send over the realtime socket."""

    JOIN_EVENT_CHAT: Final[str] = "joinEventChat"
    LEAVE_EVENT_CHAT: Final[str] = "leaveEventChat"
    SEND_MESSAGE: Final[str] = "sendMessage"
    BROADCAST_MESSAGE: Final[str] = "broadcastMessage"
    MARK_AS_READ: Final[str] = "markAsRead"
    HEARTBEAT: Final[str] = "heartbeat"


# =============================================================================
# WebSocket Close Codes
# =============================================================================


class CLOSE_CODES:
    """Application close codes for the realtime socket."""

    UNAUTHENTICATED: Final[int] = 4001
    FORBIDDEN: Final[int] = 4003
