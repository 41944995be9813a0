"""
Delivery dispatcher: send, reply and event broadcast.

send_message() persists one Message, then fans out to each recipient on
its own: ledger increment, then a receiveMessage push to the recipient's
personal room. A failing recipient is logged as a PartialDeliveryWarning
and reported on the Delivery; the message and the other recipients are
unaffected.

broadcast_to_event() appends one EventChatMessage to the event's chat
group and pushes it once to every distinct connection of the targets.

Usage:
    dispatcher = get_runtime().dispatcher()

    delivery = dispatcher.send_message(alice, [bob.id, carol.id], "See you at 9")
    if delivery.is_partial:
        ...

    view = dispatcher.broadcast_to_event(manager, event.id, "Gates open")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from core.exceptions import PermissionDeniedError, ValidationError
from core.services import BaseService
from events.services import EventMembershipService
from messaging.constants import MESSAGE_CONFIG, PushEvent
from messaging.dto import Delivery
from messaging.exceptions import PartialDeliveryWarning
from messaging.realtime.registry import room_for_event, room_for_user
from messaging.services.groups import EventChatService
from messaging.services.store import clean_text, normalize_user_ids

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User
    from messaging.dto import EventChatMessageView
    from messaging.realtime.registry import RoomRegistry
    from messaging.realtime.transport import PushTransport
    from messaging.services.ledger import UnreadLedger
    from messaging.services.store import MessageStore


class DeliveryDispatcher(BaseService):
    """
    Fans new messages out to ledgers and live connections.

    Args:
        store: Message persistence
        ledger: Unread counters
        registry: Room registry used to find live connections
        transport: Push transport
        broadcast_max_retries: Optimistic append attempts per broadcast;
            defaults to settings.MESSAGING["BROADCAST_MAX_RETRIES"]
    """

    def __init__(
        self,
        store: MessageStore,
        ledger: UnreadLedger,
        registry: RoomRegistry,
        transport: PushTransport,
        broadcast_max_retries: int | None = None,
    ):
        self.store = store
        self.ledger = ledger
        self.registry = registry
        self.transport = transport
        if broadcast_max_retries is None:
            broadcast_max_retries = getattr(settings, "MESSAGING", {}).get(
                "BROADCAST_MAX_RETRIES", 5
            )
        self.broadcast_max_retries = broadcast_max_retries

    # =========================================================================
    # Direct / group messages
    # =========================================================================

    def send_message(self, sender: User, recipient_ids: Iterable, text: str) -> Delivery:
        """
        Persist a message and fan it out.

        All validation happens before the message is written. Recipients
        that are offline are still counted in the ledger.

        Raises:
            ValidationError: Empty text or recipients, malformed ids
            NotFoundError: A recipient does not exist
        """
        message = self.store.create_message(sender, recipient_ids, text)
        view = self.store.get_view(message.id)
        payload = view.to_payload()

        failed = []
        for recipient_id in view.recipient_ids:
            try:
                with transaction.atomic():
                    self.ledger.increment(recipient_id, sender.id, at=view.created_at)
                rejected = self._push_to_user(recipient_id, payload)
            except Exception as e:
                cause = e
            else:
                if not rejected:
                    continue
                cause = ConnectionError(f"{rejected} push(es) rejected by the channel layer")

            self.get_logger().warning(
                str(PartialDeliveryWarning(message.id, recipient_id, cause))
            )
            failed.append(recipient_id)

        if failed:
            self.get_logger().warning(
                f"Message {message.id} delivered to "
                f"{len(view.recipient_ids) - len(failed)}/{len(view.recipient_ids)} recipient(s)"
            )
        return Delivery(message=view, failed_recipients=tuple(failed))

    def reply_to(self, sender: User, recipient_id, text: str) -> Delivery:
        """Send a direct reply to one user."""
        return self.send_message(sender, [recipient_id], text)

    def _push_to_user(self, user_id: int, payload: dict) -> int:
        """Push receiveMessage to a user's connections. Returns the number rejected."""
        connections = self.registry.connections_for(room_for_user(user_id))
        if not connections:
            return 0
        accepted = self.transport.send_many(connections, PushEvent.RECEIVE_MESSAGE, payload)
        return len(connections) - accepted

    # =========================================================================
    # Event broadcast
    # =========================================================================

    def broadcast_to_event(
        self,
        sender: User,
        event_id: int,
        text: str,
        recipient_ids: Iterable | None = None,
        media_url: str | None = None,
    ) -> EventChatMessageView:
        """
        Append a message to an event chat and push it to its targets.

        Recipients default to the whole team, sender included; in that
        case connections in the event room receive the push too.

        Raises:
            NotFoundError: Event does not exist
            PermissionDeniedError: Sender is not on the event team
            ValidationError: Empty message, bad media URL, or a recipient
                outside the team
            ChatGroupBusyError: Concurrent broadcasts kept winning the append
        """
        membership = EventMembershipService.get_membership(event_id)
        if not membership.is_member(sender.pk):
            raise PermissionDeniedError(
                "Only team members can post to this event chat",
                error_code="NOT_EVENT_MEMBER",
                details={"event_id": event_id},
            )

        text = clean_text(text, allow_blank=True)
        media_url = (media_url or "").strip()
        if not text and not media_url:
            raise ValidationError(
                "A broadcast needs text or media",
                error_code="EMPTY_MESSAGE",
            )
        if len(media_url) > MESSAGE_CONFIG.MAX_MEDIA_URL_LENGTH:
            raise ValidationError(
                "Media URL is too long",
                error_code="MEDIA_URL_TOO_LONG",
            )

        whole_team = recipient_ids is None
        if whole_team:
            targets = sorted(membership.member_ids)
        else:
            targets = normalize_user_ids(recipient_ids)
            if not targets:
                raise ValidationError(
                    "At least one recipient is required",
                    error_code="EMPTY_RECIPIENTS",
                )
            outsiders = [user_id for user_id in targets if not membership.is_member(user_id)]
            if outsiders:
                raise ValidationError(
                    "Recipients must be members of the event team",
                    error_code="NOT_EVENT_MEMBER",
                    details={"user_ids": outsiders},
                )

        group = EventChatService.ensure_group(event_id, membership.member_ids)
        message = EventChatService.append(
            group,
            sender,
            text,
            media_url=media_url,
            recipient_ids=targets,
            max_retries=self.broadcast_max_retries,
        )
        view = EventChatService.populate(message)

        rooms = [room_for_user(user_id) for user_id in targets]
        if whole_team:
            rooms.append(room_for_event(event_id))
        connections = set()
        for room in rooms:
            try:
                connections |= self.registry.connections_for(room)
            except Exception as e:
                self.get_logger().warning(
                    f"Broadcast {message.id}: could not resolve {room}: {e!r}",
                    exc_info=True,
                )
        self.transport.send_many(connections, PushEvent.RECEIVE_MESSAGE, view.to_payload())

        self.get_logger().info(
            f"User {sender.pk} broadcast #{view.sequence} to event {event_id} "
            f"({len(targets)} recipient(s), {len(connections)} connection(s))"
        )
        return view
