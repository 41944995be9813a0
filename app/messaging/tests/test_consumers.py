"""
Tests for RealtimeConsumer and JWTAuthMiddleware.

Sockets run through the same middleware stack as config/asgi.py (minus the
origin validator) on the in-memory channel layer.
"""

from unittest.mock import patch

import pytest
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from events.tests.factories import EventFactory
from messaging.constants import CLOSE_CODES
from messaging.middleware import JWTAuthMiddleware
from messaging.realtime.registry import room_for_event, room_for_user
from messaging.routing import websocket_urlpatterns

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]

TIMEOUT = 2


def token_for(user):
    return str(AccessToken.for_user(user))


def communicator(path="/ws/realtime/", subprotocols=None):
    application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
    return WebsocketCommunicator(application, path, subprotocols=subprotocols)


async def _create_event(manager, team):
    return await database_sync_to_async(EventFactory)(manager=manager, team=team)


async def connect_as(user):
    socket = communicator(f"/ws/realtime/?token={token_for(user)}")
    connected, _ = await socket.connect(timeout=TIMEOUT)
    assert connected
    return socket


class TestAuthentication:
    async def test_anonymous_socket_is_closed(self):
        socket = communicator()

        connected, code = await socket.connect(timeout=TIMEOUT)

        assert not connected
        assert code == CLOSE_CODES.UNAUTHENTICATED

    async def test_invalid_token_is_closed(self):
        socket = communicator("/ws/realtime/?token=not-a-jwt")

        connected, code = await socket.connect(timeout=TIMEOUT)

        assert not connected
        assert code == CLOSE_CODES.UNAUTHENTICATED

    async def test_token_in_subprotocol(self, alice):
        socket = communicator(subprotocols=["jwt", token_for(alice)])

        connected, subprotocol = await socket.connect(timeout=TIMEOUT)

        assert connected
        assert subprotocol == "jwt"
        await socket.disconnect()

    async def test_connect_joins_personal_room(self, messaging_runtime, alice):
        socket = await connect_as(alice)

        assert len(messaging_runtime.registry.connections_for(room_for_user(alice.id))) == 1

        await socket.disconnect()

        assert messaging_runtime.registry.connections_for(room_for_user(alice.id)) == frozenset()


class TestPresenceRefresh:
    async def test_heartbeat_rejoins_expired_rooms(self, messaging_runtime, manager, bob):
        """
        A heartbeat puts the socket back into rooms whose entries expired.

        Why it matters: Registry entries carry a TTL; a socket that stays
        open past it must keep receiving pushes.
        """
        event = await _create_event(manager, [bob])
        socket = await connect_as(bob)
        await socket.send_json_to({"type": "joinEventChat", "eventId": event.id})
        assert await socket.receive_nothing()
        registry = messaging_runtime.registry
        (channel,) = registry.connections_for(room_for_user(bob.id))
        registry.leave(channel)

        await socket.send_json_to({"type": "heartbeat"})
        assert await socket.receive_nothing()

        assert registry.rooms_for(channel) == frozenset(
            {room_for_user(bob.id), room_for_event(event.id)}
        )
        await socket.disconnect()

    async def test_left_rooms_stay_left(self, messaging_runtime, manager, bob):
        event = await _create_event(manager, [bob])
        socket = await connect_as(bob)
        await socket.send_json_to({"type": "joinEventChat", "eventId": event.id})
        await socket.send_json_to({"type": "leaveEventChat", "eventId": event.id})

        await socket.send_json_to({"type": "heartbeat"})
        assert await socket.receive_nothing()

        (channel,) = messaging_runtime.registry.connections_for(room_for_user(bob.id))
        assert messaging_runtime.registry.rooms_for(channel) == frozenset({room_for_user(bob.id)})
        await socket.disconnect()

    async def test_keep_alive_runs_on_interval(self, messaging_runtime, alice):
        with patch("messaging.consumers.ROOM_CONFIG.HEARTBEAT_INTERVAL_SECONDS", 0.01):
            socket = await connect_as(alice)
            registry = messaging_runtime.registry
            (channel,) = registry.connections_for(room_for_user(alice.id))
            registry.leave(channel)

            assert await socket.receive_nothing(timeout=0.2)

            assert registry.rooms_for(channel) == frozenset({room_for_user(alice.id)})
            await socket.disconnect()

        assert registry.rooms_for(channel) == frozenset()


class TestMessaging:
    async def test_send_message_reaches_recipient(self, alice, bob):
        """
        A sendMessage frame from A arrives as receiveMessage on B's socket.

        Why it matters: This is the live path end to end: frame parsing,
        persistence, fan-out and the consumer's push handler.
        """
        alice_socket = await connect_as(alice)
        bob_socket = await connect_as(bob)

        await alice_socket.send_json_to(
            {"type": "sendMessage", "recipients": [bob.id], "message": "Hi Bob"}
        )
        frame = await bob_socket.receive_json_from(timeout=TIMEOUT)

        assert frame["type"] == "receiveMessage"
        assert frame["payload"]["text"] == "Hi Bob"
        assert frame["payload"]["sender"] == {"id": alice.id, "name": "Alice"}
        assert await alice_socket.receive_nothing()

        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_mark_as_read_notifies_sender(self, alice, bob):
        alice_socket = await connect_as(alice)
        bob_socket = await connect_as(bob)
        await alice_socket.send_json_to(
            {"type": "sendMessage", "recipients": [bob.id], "message": "Hi Bob"}
        )
        message = await bob_socket.receive_json_from(timeout=TIMEOUT)

        await bob_socket.send_json_to({"type": "markAsRead", "counterpartId": alice.id})
        frame = await alice_socket.receive_json_from(timeout=TIMEOUT)

        assert frame["type"] == "messageRead"
        assert frame["payload"]["message_ids"] == [message["payload"]["id"]]
        assert frame["payload"]["reader_id"] == bob.id

        await alice_socket.disconnect()
        await bob_socket.disconnect()

    async def test_broadcast_reaches_event_room(self, messaging_runtime, manager, bob):
        event = await _create_event(manager, [bob])
        manager_socket = await connect_as(manager)
        bob_socket = await connect_as(bob)

        await bob_socket.send_json_to({"type": "joinEventChat", "eventId": event.id})
        assert await bob_socket.receive_nothing()
        assert len(messaging_runtime.registry.connections_for(room_for_event(event.id))) == 1

        await manager_socket.send_json_to(
            {"type": "broadcastMessage", "eventId": event.id, "message": "Gates open"}
        )
        bob_frame = await bob_socket.receive_json_from(timeout=TIMEOUT)
        manager_frame = await manager_socket.receive_json_from(timeout=TIMEOUT)

        assert bob_frame["type"] == "receiveMessage"
        assert bob_frame["payload"]["sequence"] == 1
        assert manager_frame == bob_frame
        assert await bob_socket.receive_nothing()

        await manager_socket.disconnect()
        await bob_socket.disconnect()


class TestErrorFrames:
    async def test_unknown_type(self, alice):
        socket = await connect_as(alice)

        await socket.send_json_to({"type": "dance"})
        frame = await socket.receive_json_from(timeout=TIMEOUT)

        assert frame["type"] == "error"
        assert frame["payload"]["error_code"] == "UNKNOWN_TYPE"
        assert frame["payload"]["action"] == "dance"
        await socket.disconnect()

    async def test_non_object_frame(self, alice):
        socket = await connect_as(alice)

        await socket.send_json_to(["sendMessage"])
        frame = await socket.receive_json_from(timeout=TIMEOUT)

        assert frame["payload"]["error_code"] == "INVALID_FRAME"
        await socket.disconnect()

    async def test_service_error_keeps_socket_open(self, alice, bob):
        socket = await connect_as(alice)

        await socket.send_json_to({"type": "sendMessage", "recipients": [bob.id], "message": " "})
        error = await socket.receive_json_from(timeout=TIMEOUT)
        await socket.send_json_to({"type": "markAsRead"})
        second_error = await socket.receive_json_from(timeout=TIMEOUT)

        assert error["payload"]["error_code"] == "EMPTY_TEXT"
        assert error["payload"]["action"] == "sendMessage"
        assert second_error["payload"]["error_code"] == "INVALID_ID"
        await socket.disconnect()

    async def test_out_of_range_ids_keep_socket_open(self, alice):
        socket = await connect_as(alice)

        await socket.send_json_to({"type": "markAsRead", "counterpartId": 10**20})
        id_error = await socket.receive_json_from(timeout=TIMEOUT)
        await socket.send_json_to(
            {"type": "sendMessage", "recipients": [10**20], "message": "hi"}
        )
        recipient_error = await socket.receive_json_from(timeout=TIMEOUT)

        assert id_error["payload"]["error_code"] == "INVALID_ID"
        assert recipient_error["payload"]["error_code"] == "INVALID_USER_ID"
        await socket.disconnect()

    async def test_outsider_cannot_join_event_chat(self, messaging_runtime, manager, alice):
        event = await _create_event(manager, [])
        socket = await connect_as(alice)

        await socket.send_json_to({"type": "joinEventChat", "eventId": event.id})
        frame = await socket.receive_json_from(timeout=TIMEOUT)

        assert frame["payload"]["error_code"] == "NOT_EVENT_MEMBER"
        assert messaging_runtime.registry.connections_for(room_for_event(event.id)) == frozenset()
        await socket.disconnect()
