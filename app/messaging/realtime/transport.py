"""
Push transport over the Channels layer.

Every push is one channel layer message to one connection:

    {"type": "push.event", "event": "receiveMessage", "payload": {...}}

RealtimeConsumer.push_event() forwards it to the socket. Delivery is
at-most-once and fire-and-forget: layer errors are logged, never raised.

Usage:
    transport = PushTransport(get_channel_layer(), registry)
    transport.send(channel_name, PushEvent.RECEIVE_MESSAGE, view.to_payload())
    transport.send_to_room(room_for_user(user.id), PushEvent.MESSAGE_READ, payload)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync

from messaging.constants import PushEvent

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from messaging.realtime.registry import RoomRegistry

logger = logging.getLogger(__name__)


class PushTransport:
    """
    Sends wire events to live connections.

    Call from sync code only (views, services, database_sync_to_async
    wrappers in consumers).
    """

    def __init__(self, channel_layer, registry: RoomRegistry):
        self.channel_layer = channel_layer
        self.registry = registry

    def send(self, connection: str, event: str, payload: dict[str, Any]) -> bool:
        """
        Push one event to one connection.

        Returns:
            True if the layer accepted the message
        """
        try:
            async_to_sync(self.channel_layer.send)(
                connection,
                {"type": PushEvent.LAYER_TYPE, "event": event, "payload": payload},
            )
        except Exception as e:
            logger.error(f"Push of {event} to {connection} failed: {e!r}")
            return False
        return True

    def send_many(self, connections: Iterable[str], event: str, payload: dict[str, Any]) -> int:
        """Push to each distinct connection once. Returns the number accepted."""
        return sum(self.send(connection, event, payload) for connection in set(connections))

    def send_to_room(self, room: str, event: str, payload: dict[str, Any]) -> int:
        """Push to every connection in a room. An empty room is not an error."""
        return self.send_many(self.registry.connections_for(room), event, payload)
