"""
Read models for the messaging layer.

Persisted entities are never mutated to carry display fields. Services
build these dataclasses instead and hand them to views, consumers and the
push transport.

Types:
    ReadMark: One reader's receipt on a message
    MessageView: A message with sender name, recipients and receipts resolved
    EventChatMessageView: One event chat append
    SenderSummary: One row of the inbox sender list
    Delivery: Outcome of sending a direct/group message
    ReadResult: Outcome of marking a conversation read
    EventChatSummary: One row of the event chat list

Usage:
    from messaging.dto import MessageView

    view = MessageStore().populate(message)
    payload = view.to_payload()  # JSON-safe dict for the wire
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ReadMark:
    """A reader and when they read the message."""

    reader_id: int
    read_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {"reader_id": self.reader_id, "read_at": _iso(self.read_at)}


@dataclass(frozen=True)
class MessageView:
    """
    Populated direct/group message.

    Attributes:
        id: Message id
        sender_id: Sender user id
        sender_name: Sender display name at read time
        recipient_ids: Recipients in the order the sender listed them
        text: Message body
        kind: "direct" or "group"
        created_at: Creation timestamp
        read_by: Receipts, oldest first
    """

    id: int
    sender_id: int
    sender_name: str
    recipient_ids: tuple[int, ...]
    text: str
    kind: str
    created_at: datetime
    read_by: tuple[ReadMark, ...] = ()

    def is_read_by(self, user_id: int) -> bool:
        return any(mark.reader_id == user_id for mark in self.read_by)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe representation used on the wire and in HTTP responses."""
        return {
            "id": self.id,
            "sender": {"id": self.sender_id, "name": self.sender_name},
            "recipients": list(self.recipient_ids),
            "text": self.text,
            "kind": self.kind,
            "created_at": _iso(self.created_at),
            "read_by": [mark.to_payload() for mark in self.read_by],
        }


@dataclass(frozen=True)
class EventChatMessageView:
    """Populated event chat message."""

    id: int
    event_id: int
    sender_id: int
    sender_name: str
    text: str
    media_url: str
    recipient_ids: tuple[int, ...]
    sequence: int
    created_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "sender": {"id": self.sender_id, "name": self.sender_name},
            "text": self.text,
            "media_url": self.media_url or None,
            "recipients": list(self.recipient_ids),
            "sequence": self.sequence,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class SenderSummary:
    """
    One counterpart in a user's inbox.

    Attributes:
        counterpart_id: User who sent messages to the inbox owner
        counterpart_name: Their display name
        last_message: Text of their most recent message
        last_message_at: When it was sent
        unread_count: Ledger count for (owner, counterpart)
    """

    counterpart_id: int
    counterpart_name: str
    last_message: str
    last_message_at: datetime
    unread_count: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "counterpart": {"id": self.counterpart_id, "name": self.counterpart_name},
            "last_message": self.last_message,
            "last_message_at": _iso(self.last_message_at),
            "unread_count": self.unread_count,
        }


@dataclass(frozen=True)
class Delivery:
    """
    Result of DeliveryDispatcher.send_message().

    The message is always persisted when a Delivery is returned.
    failed_recipients lists recipients whose ledger update or push failed.
    """

    message: MessageView
    failed_recipients: tuple[int, ...] = field(default=())

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_recipients)

    def to_payload(self) -> dict[str, Any]:
        return {
            "message": self.message.to_payload(),
            "failed_recipients": list(self.failed_recipients),
        }


@dataclass(frozen=True)
class ReadResult:
    """
    Result of ReadReceiptSynchronizer.mark_conversation_read().

    message_ids holds only the messages that transitioned to read in this
    call; an empty tuple means nothing was unread.
    """

    reader_id: int
    counterpart_id: int
    message_ids: tuple[int, ...]
    read_at: datetime

    def to_payload(self) -> dict[str, Any]:
        """Payload of the messageRead push sent to the counterpart."""
        return {
            "message_ids": list(self.message_ids),
            "reader_id": self.reader_id,
            "read_at": _iso(self.read_at),
        }


@dataclass(frozen=True)
class EventChatSummary:
    """One entry of a user's event chat list."""

    event_id: int
    title: str
    manager_id: int
    last_message_at: datetime | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "title": self.title,
            "manager_id": self.manager_id,
            "last_message_at": _iso(self.last_message_at),
        }
