"""
WebSocket consumer for realtime messaging.

Consumers:
    RealtimeConsumer: One socket per client session

Authentication:
    Users are authenticated via JWT (query string or subprotocol). The
    JWTAuthMiddleware attaches the user to self.scope["user"]; anonymous
    sockets are closed with 4001.

Rooms:
    On connect the socket joins its user's personal room (user:<id>).
    joinEventChat adds it to an event room (event:<id>). On disconnect it
    leaves every room. While open, the socket refreshes its registry
    entries every ROOM_CONFIG.HEARTBEAT_INTERVAL_SECONDS and re-joins any
    room whose entry expired.

Message Types (from client):
    - joinEventChat: {"type": "joinEventChat", "eventId": 3}
    - leaveEventChat: {"type": "leaveEventChat", "eventId": 3}
    - sendMessage: {"type": "sendMessage", "recipients": [2, 5], "message": "Hi"}
    - broadcastMessage: {"type": "broadcastMessage", "eventId": 3, "message": "Go",
        "mediaUrl": "...", "recipients": [2]}   (mediaUrl and recipients optional)
    - markAsRead: {"type": "markAsRead", "counterpartId": 2}
    - heartbeat: {"type": "heartbeat"}   (refreshes presence; no reply)

Message Types (to client):
    - receiveMessage: {"type": "receiveMessage", "payload": <message>}
    - messageRead: {"type": "messageRead", "payload": {"message_ids": [...], ...}}
    - error: {"type": "error", "payload": {"error": ..., "error_code": ..., "action": ...}}
"""

from __future__ import annotations

import asyncio
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from core.converters import fits_db_id
from core.exceptions import BaseApplicationError, PermissionDeniedError, ValidationError
from events.services import EventMembershipService
from messaging.constants import CLOSE_CODES, ROOM_CONFIG, ClientAction, PushEvent
from messaging.realtime.registry import room_for_event, room_for_user
from messaging.realtime.runtime import get_runtime

logger = logging.getLogger(__name__)


def _required_id(content: dict, name: str) -> int:
    value = content.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(
            f"{name} is required", error_code="INVALID_ID", details={"field": name}
        )
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(
            f"{name} must be an integer", error_code="INVALID_ID", details={"field": name}
        ) from None
    if not fits_db_id(number):
        raise ValidationError(
            f"{name} is out of range", error_code="INVALID_ID", details={"field": name}
        )
    return number


class RealtimeConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for messages, broadcasts and read receipts.

    Attributes:
        user: Authenticated user (after connect)
        runtime: MessagingRuntime providing registry and components
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.runtime = None
        self.rooms: set[str] = set()
        self._keep_alive_task = None

    async def connect(self):
        user = self.scope.get("user")

        if not user or not user.is_authenticated:
            logger.warning("Rejected unauthenticated realtime connection")
            await self.close(code=CLOSE_CODES.UNAUTHENTICATED)
            return

        self.user = user
        self.runtime = get_runtime()
        await self._join(room_for_user(user.pk))

        subprotocols = self.scope.get("subprotocols") or []
        await self.accept(subprotocol="jwt" if subprotocols[:1] == ["jwt"] else None)
        self._keep_alive_task = asyncio.create_task(self._keep_alive())
        logger.info(f"User {user.pk} connected on {self.channel_name}")

    async def disconnect(self, close_code):
        if self._keep_alive_task is not None:
            self._keep_alive_task.cancel()
        if self.user is None:
            return
        rooms = await self._leave_all()
        logger.info(
            f"User {self.user.pk} disconnected ({close_code}), left {len(rooms)} room(s)"
        )

    async def receive_json(self, content, **kwargs):
        """
        Dispatch a client frame by its "type".

        Application errors become error frames; the socket stays open.
        """
        if not isinstance(content, dict):
            await self._send_error(
                {"error": "Frames must be JSON objects", "error_code": "INVALID_FRAME"}
            )
            return

        action = content.get("type")
        handlers = {
            ClientAction.JOIN_EVENT_CHAT: self._handle_join_event_chat,
            ClientAction.LEAVE_EVENT_CHAT: self._handle_leave_event_chat,
            ClientAction.SEND_MESSAGE: self._handle_send_message,
            ClientAction.BROADCAST_MESSAGE: self._handle_broadcast_message,
            ClientAction.MARK_AS_READ: self._handle_mark_as_read,
            ClientAction.HEARTBEAT: self._handle_heartbeat,
        }
        handler = handlers.get(action)
        if handler is None:
            await self._send_error(
                {"error": f"Unknown message type: {action}", "error_code": "UNKNOWN_TYPE"},
                action=action,
            )
            return

        try:
            await handler(content)
        except BaseApplicationError as e:
            await self._send_error(e.to_dict(), action=action)

    # =========================================================================
    # Client actions
    # =========================================================================

    async def _handle_join_event_chat(self, content):
        event_id = _required_id(content, "eventId")
        await self._ensure_event_member(event_id)
        await self._join(room_for_event(event_id))

    async def _handle_leave_event_chat(self, content):
        event_id = _required_id(content, "eventId")
        await self._leave_room(room_for_event(event_id))

    async def _handle_send_message(self, content):
        await self._send_message(content.get("recipients") or [], content.get("message"))

    async def _handle_broadcast_message(self, content):
        event_id = _required_id(content, "eventId")
        await self._broadcast(
            event_id,
            content.get("message"),
            content.get("recipients"),
            content.get("mediaUrl"),
        )

    async def _handle_mark_as_read(self, content):
        counterpart_id = _required_id(content, "counterpartId")
        await self._mark_read(counterpart_id)

    async def _handle_heartbeat(self, content):
        await self._refresh_presence()

    async def _keep_alive(self):
        while True:
            await asyncio.sleep(ROOM_CONFIG.HEARTBEAT_INTERVAL_SECONDS)
            try:
                await self._refresh_presence()
            except Exception:
                logger.exception(f"Presence refresh failed for {self.channel_name}")

    # =========================================================================
    # Channel layer handlers
    # =========================================================================

    async def push_event(self, event):
        """
        Handle push.event messages from PushTransport.

        Forwards the wire event to the WebSocket client.
        """
        await self.send_json({"type": event["event"], "payload": event["payload"]})

    async def _send_error(self, error: dict, action=None):
        payload = dict(error)
        if action is not None:
            payload["action"] = action
        await self.send_json({"type": PushEvent.ERROR, "payload": payload})

    # =========================================================================
    # Sync bridges
    # =========================================================================

    @database_sync_to_async
    def _join(self, room: str):
        self.runtime.registry.join(room, self.channel_name)
        self.rooms.add(room)

    @database_sync_to_async
    def _leave_room(self, room: str):
        self.runtime.registry.leave_room(room, self.channel_name)
        self.rooms.discard(room)

    @database_sync_to_async
    def _leave_all(self):
        self.rooms.clear()
        return self.runtime.registry.leave(self.channel_name)

    @database_sync_to_async
    def _refresh_presence(self):
        registry = self.runtime.registry
        expired = self.rooms - registry.touch(self.channel_name)
        for room in expired:
            registry.join(room, self.channel_name)
        if expired:
            logger.warning(
                f"Re-joined {len(expired)} expired room(s) for {self.channel_name}"
            )
        return expired

    @database_sync_to_async
    def _ensure_event_member(self, event_id: int):
        membership = EventMembershipService.get_membership(event_id)
        if not membership.is_member(self.user.pk):
            raise PermissionDeniedError(
                "Only team members can join this event chat",
                error_code="NOT_EVENT_MEMBER",
                details={"event_id": event_id},
            )

    @database_sync_to_async
    def _send_message(self, recipients, text):
        return self.runtime.dispatcher().send_message(self.user, recipients, text)

    @database_sync_to_async
    def _broadcast(self, event_id, text, recipients, media_url):
        return self.runtime.dispatcher().broadcast_to_event(
            self.user, event_id, text, recipient_ids=recipients, media_url=media_url
        )

    @database_sync_to_async
    def _mark_read(self, counterpart_id: int):
        return self.runtime.synchronizer().mark_conversation_read(self.user, counterpart_id)
