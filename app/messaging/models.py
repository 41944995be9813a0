"""
Messaging models.

This module defines the persisted state of the messaging subsystem:
- Direct and group messages with an ordered recipient set
- Read receipts (one per message and reader)
- The unread ledger (per owner and counterpart counters)
- Event chat groups and their append-only message log

Models:
    Message: A message from one sender to one or more recipients
    MessageRecipient: Ordered recipient row for a Message
    ReadReceipt: Proof that a recipient read a message
    UnreadLedgerEntry: Cached unread count for (owner, counterpart)
    EventChatGroup: One chat group per event, fixed team membership
    EventChatMessage: One append to an event chat group

Design Decisions:
    - Messages are immutable after creation; only the receipt set grows
    - Receipts are deduplicated by a unique (message, reader) constraint
    - Unread counters live in their own table and are only ever touched
      with single-row UPDATE statements (F expressions)
    - Event chat appends are serialized by an optimistic version column
      on the group; the new version becomes the message sequence
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel


class MessageKind(models.TextChoices):
    """
    Kind of message, derived from the recipient count.

    DIRECT: Exactly one recipient
    GROUP: Two or more recipients
    """

    DIRECT = "direct", "Direct"
    GROUP = "group", "Group"


# =============================================================================
# Direct / Group Messages
# =============================================================================


class Message(BaseModel):
    """
    A message sent by one user to a set of recipients.

    Fields:
        sender: User who sent the message
        recipients: Ordered set of recipients (through MessageRecipient)
        text: Message body (non-empty after strip)
        kind: direct or group, derived from the recipient count

    Ordering:
        (created_at, id) ascending; id breaks ties between messages created
        in the same clock tick.
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )
    recipients = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="MessageRecipient",
        related_name="received_messages",
        help_text="Users this message was addressed to",
    )
    text = models.TextField(
        help_text="Message body",
    )
    kind = models.CharField(
        max_length=10,
        choices=MessageKind.choices,
        default=MessageKind.DIRECT,
        help_text="direct (one recipient) or group (several recipients)",
    )

    class Meta:
        db_table = "messaging_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["sender", "created_at"],
                name="msg_sender_created_idx",
            ),
        ]

    def __str__(self):
        return f"Message {self.pk} from {self.sender_id}"


class MessageRecipient(models.Model):
    """
    Recipient row for a Message.

    position preserves the order the sender listed recipients in.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="recipient_links",
        help_text="Message this recipient row belongs to",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_links",
        help_text="Recipient user",
    )
    position = models.PositiveIntegerField(
        help_text="Zero-based position in the sender's recipient list",
    )

    class Meta:
        db_table = "messaging_message_recipient"
        ordering = ["message", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "recipient"],
                name="unique_message_recipient",
            ),
        ]
        indexes = [
            models.Index(
                fields=["recipient", "message"],
                name="msg_recipient_lookup_idx",
            ),
        ]

    def __str__(self):
        return f"{self.recipient_id} <- message {self.message_id}"


class ReadReceipt(models.Model):
    """
    Read receipt for one (message, reader) pair.

    The unique constraint makes concurrent mark-read calls safe: the second
    insert fails instead of creating a duplicate.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="receipts",
        help_text="Message that was read",
    )
    reader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="read_receipts",
        help_text="Recipient who read the message",
    )
    read_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the message was read",
    )

    class Meta:
        db_table = "messaging_read_receipt"
        ordering = ["read_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "reader"],
                name="unique_message_reader_receipt",
            ),
        ]

    def __str__(self):
        return f"message {self.message_id} read by {self.reader_id}"


# =============================================================================
# Unread Ledger
# =============================================================================


class UnreadLedgerEntry(BaseModel):
    """
    Unread counter for messages from counterpart to owner.

    A cache over ReadReceipt; UnreadLedger.reconcile() rebuilds it.

    Fields:
        owner: User whose unread badge this is
        counterpart: User whose messages are counted
        unread_count: Unread messages from counterpart (never negative)
        last_message_at: When counterpart last messaged owner
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="unread_entries",
        help_text="User whose unread count this is",
    )
    counterpart = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User whose messages are being counted",
    )
    unread_count = models.PositiveIntegerField(
        default=0,
        help_text="Unread messages from counterpart",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When counterpart last sent owner a message",
    )

    class Meta:
        db_table = "messaging_unread_ledger"
        ordering = ["-last_message_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "counterpart"],
                name="unique_ledger_owner_counterpart",
            ),
            models.CheckConstraint(
                condition=Q(unread_count__gte=0),
                name="ledger_unread_count_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.owner_id} <- {self.counterpart_id}: {self.unread_count}"


# =============================================================================
# Event Chat
# =============================================================================


class EventChatGroup(BaseModel):
    """
    Chat group for an event team.

    Created lazily on team formation or first broadcast and never removed.
    Membership only grows.

    Fields:
        event: The event this group belongs to (one group per event)
        members: Manager plus accepted volunteers
        version: Incremented by every append; appends are conditional on it
        last_message_at: Timestamp of the latest append
    """

    event = models.OneToOneField(
        "events.Event",
        on_delete=models.CASCADE,
        related_name="chat_group",
        help_text="Event this chat group belongs to",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="event_chat_groups",
        help_text="Users who can read and post in this group",
    )
    version = models.PositiveIntegerField(
        default=0,
        help_text="Append counter used for optimistic concurrency",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the latest message was appended",
    )

    class Meta:
        db_table = "messaging_event_chat_group"
        ordering = ["-last_message_at"]

    def __str__(self):
        return f"Chat for event {self.event_id}"


class EventChatMessage(BaseModel):
    """
    One message appended to an event chat group.

    Fields:
        group: Chat group the message was appended to
        sender: Member who broadcast the message
        text: Message body (may be blank when media_url is set)
        media_url: Opaque link to an uploaded file
        recipients: Members the broadcast targeted
        sequence: Append position within the group, starting at 1
    """

    group = models.ForeignKey(
        EventChatGroup,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Chat group this message belongs to",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="event_chat_messages",
        help_text="User who broadcast this message",
    )
    text = models.TextField(
        blank=True,
        help_text="Message body",
    )
    media_url = models.CharField(
        max_length=2048,
        blank=True,
        help_text="Optional link to attached media",
    )
    recipients = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="event_chat_inbox",
        help_text="Members this broadcast targeted",
    )
    sequence = models.PositiveIntegerField(
        help_text="Append order within the group",
    )

    class Meta:
        db_table = "messaging_event_chat_message"
        ordering = ["group", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["group", "sequence"],
                name="unique_event_chat_sequence",
            ),
        ]

    def __str__(self):
        return f"Event chat {self.group_id} #{self.sequence}"
