"""
Message store: persistence of direct/group messages and read receipts.

MessageStore is the only writer of Message, MessageRecipient and
ReadReceipt rows. It validates input, infers the message kind and builds
MessageView read models.

Usage:
    from messaging.services.store import MessageStore

    store = MessageStore()
    message = store.create_message(sender, [bob.id, carol.id], "Shift moved to 9am")
    assert message.kind == MessageKind.GROUP

    for message in store.find_conversation(alice.id, bob.id):
        ...

    changed = store.mark_read(message.id, bob.id)  # False on repeat calls
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db.models import Prefetch, Q
from django.utils import timezone

from core.converters import fits_db_id
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.services import BaseService
from messaging.constants import MESSAGE_CONFIG
from messaging.dto import MessageView, ReadMark
from messaging.models import Message, MessageKind, MessageRecipient, ReadReceipt

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User


def normalize_user_ids(raw_ids: Iterable, field_name: str = "recipients") -> list[int]:
    """
    Coerce ids to ints and drop duplicates, keeping first-seen order.

    Raises:
        ValidationError: An id is not a positive integer within the id range
    """
    if raw_ids is None:
        return []
    if isinstance(raw_ids, (str, bytes, dict)) or not hasattr(raw_ids, "__iter__"):
        raise ValidationError(
            f"{field_name} must be a list of user ids",
            error_code="INVALID_USER_ID",
        )

    seen: dict[int, None] = {}
    for raw in raw_ids:
        if isinstance(raw, bool):
            raise ValidationError(
                f"Invalid user id: {raw!r}",
                error_code="INVALID_USER_ID",
                details={field_name: [str(raw)]},
            )
        try:
            user_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Invalid user id: {raw!r}",
                error_code="INVALID_USER_ID",
                details={field_name: [str(raw)]},
            ) from None
        if not fits_db_id(user_id):
            raise ValidationError(
                f"Invalid user id: {raw!r}",
                error_code="INVALID_USER_ID",
                details={field_name: [str(raw)]},
            )
        seen.setdefault(user_id, None)
    return list(seen)


def clean_text(text, *, allow_blank: bool = False) -> str:
    """
    Strip and bound message text.

    Raises:
        ValidationError: Text is blank (unless allowed) or too long
    """
    text = text.strip() if isinstance(text, str) else ""
    if not text and not allow_blank:
        raise ValidationError(
            "Message text cannot be empty",
            error_code="EMPTY_TEXT",
        )
    if len(text) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message text exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
            error_code="TEXT_TOO_LONG",
        )
    return text


class MessageStore(BaseService):
    """
    Persistence for messages and read receipts.

    Methods:
        create_message: Validate and persist a message
        find_conversation: Messages between two users, oldest first
        find_inbox: Messages addressed to a user, newest first
        find_unread_from: Unread messages from one user to another
        mark_read: Idempotently record a read receipt
        unread_count: Unread count computed from receipts
        populate / populate_many: Build MessageView read models
    """

    def create_message(
        self,
        sender: User,
        recipient_ids: Iterable,
        text: str,
        kind: str | None = None,
    ) -> Message:
        """
        Persist a new message.

        Duplicate recipients collapse to their first position. The kind is
        derived from the recipient count; a disagreeing caller kind is ignored.

        Args:
            sender: Sending user
            recipient_ids: Recipient user ids in display order
            text: Message body
            kind: Optional caller hint, never trusted

        Returns:
            The persisted Message

        Error codes:
            EMPTY_TEXT, TEXT_TOO_LONG: Text failed validation
            EMPTY_RECIPIENTS, TOO_MANY_RECIPIENTS: Recipient list invalid
            USER_NOT_FOUND: A recipient does not exist (NotFoundError)
        """
        text = clean_text(text)
        recipients = self.ensure_recipients_exist(recipient_ids)

        inferred = MessageKind.GROUP if len(recipients) > 1 else MessageKind.DIRECT
        if kind is not None and kind != inferred:
            self.get_logger().debug(
                f"Ignoring caller kind {kind!r} for {len(recipients)} recipient(s)"
            )

        with self.atomic():
            message = Message.objects.create(sender=sender, text=text, kind=inferred)
            MessageRecipient.objects.bulk_create(
                [
                    MessageRecipient(message=message, recipient_id=recipient_id, position=i)
                    for i, recipient_id in enumerate(recipients)
                ]
            )

        self.get_logger().debug(
            f"User {sender.id} sent {inferred} message {message.id} "
            f"to {len(recipients)} recipient(s)"
        )
        return message

    def ensure_recipients_exist(self, recipient_ids: Iterable) -> list[int]:
        """
        Normalize recipient ids and check every one exists.

        Raises:
            ValidationError: Empty or oversized recipient list
            NotFoundError: Some ids have no user
        """
        recipients = normalize_user_ids(recipient_ids)
        if not recipients:
            raise ValidationError(
                "At least one recipient is required",
                error_code="EMPTY_RECIPIENTS",
            )
        if len(recipients) > MESSAGE_CONFIG.MAX_RECIPIENTS:
            raise ValidationError(
                f"A message can have at most {MESSAGE_CONFIG.MAX_RECIPIENTS} recipients",
                error_code="TOO_MANY_RECIPIENTS",
            )

        User = get_user_model()
        existing = set(User.objects.filter(pk__in=recipients).values_list("pk", flat=True))
        missing = [user_id for user_id in recipients if user_id not in existing]
        if missing:
            raise NotFoundError(
                "Some recipients do not exist",
                error_code="USER_NOT_FOUND",
                details={"user_ids": missing},
            )
        return recipients

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def _addressed_to(user_id: int):
        return MessageRecipient.objects.filter(recipient_id=user_id).values("message_id")

    def find_conversation(self, user_a_id: int, user_b_id: int) -> QuerySet[Message]:
        """
        All messages from A to B or from B to A, ordered (created_at, id).

        The QuerySet is lazy and can be iterated more than once.
        """
        return Message.objects.filter(
            Q(sender_id=user_a_id, pk__in=self._addressed_to(user_b_id))
            | Q(sender_id=user_b_id, pk__in=self._addressed_to(user_a_id))
        ).order_by("created_at", "id")

    def find_inbox(self, user_id: int) -> QuerySet[Message]:
        """All messages addressed to user, newest first."""
        return Message.objects.filter(pk__in=self._addressed_to(user_id)).order_by(
            "-created_at", "-id"
        )

    def find_unread_from(self, counterpart_id: int, reader_id: int) -> QuerySet[Message]:
        """Messages from counterpart to reader without a receipt from reader."""
        read_by_reader = ReadReceipt.objects.filter(reader_id=reader_id).values("message_id")
        return (
            Message.objects.filter(
                sender_id=counterpart_id, pk__in=self._addressed_to(reader_id)
            )
            .exclude(pk__in=read_by_reader)
            .order_by("created_at", "id")
        )

    def unread_count(self, owner_id: int, counterpart_id: int) -> int:
        """Unread count for (owner, counterpart) computed from receipts."""
        return self.find_unread_from(counterpart_id, owner_id).count()

    # =========================================================================
    # Receipts
    # =========================================================================

    def mark_read(self, message_id: int, reader_id: int, read_at: datetime | None = None) -> bool:
        """
        Record that reader has read message.

        read_at defaults to now; it is ignored when a receipt already exists.

        Returns:
            True if a receipt was added, False if reader had already read it

        Raises:
            NotFoundError: Message does not exist
            PermissionDeniedError: Reader is not a recipient of the message
        """
        if not Message.objects.filter(pk=message_id).exists():
            raise NotFoundError(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": message_id},
            )
        if not MessageRecipient.objects.filter(
            message_id=message_id, recipient_id=reader_id
        ).exists():
            raise PermissionDeniedError(
                "Only recipients can mark a message as read",
                error_code="NOT_A_RECIPIENT",
                details={"message_id": message_id},
            )

        # get_or_create retries the lookup if a concurrent insert wins
        _, created = ReadReceipt.objects.get_or_create(
            message_id=message_id,
            reader_id=reader_id,
            defaults={"read_at": read_at or timezone.now()},
        )
        return created

    # =========================================================================
    # Read models
    # =========================================================================

    @staticmethod
    def with_related(queryset: QuerySet[Message]) -> QuerySet[Message]:
        """Attach sender, recipients and receipts in a fixed number of queries."""
        return queryset.select_related("sender").prefetch_related(
            Prefetch(
                "recipient_links",
                queryset=MessageRecipient.objects.order_by("position"),
            ),
            Prefetch(
                "receipts",
                queryset=ReadReceipt.objects.order_by("read_at", "id"),
            ),
        )

    def populate(self, message: Message) -> MessageView:
        return MessageView(
            id=message.id,
            sender_id=message.sender_id,
            sender_name=message.sender.display_name,
            recipient_ids=tuple(link.recipient_id for link in message.recipient_links.all()),
            text=message.text,
            kind=message.kind,
            created_at=message.created_at,
            read_by=tuple(
                ReadMark(reader_id=receipt.reader_id, read_at=receipt.read_at)
                for receipt in message.receipts.all()
            ),
        )

    def populate_many(self, queryset: QuerySet[Message]) -> list[MessageView]:
        return [self.populate(message) for message in self.with_related(queryset)]

    def get_view(self, message_id: int) -> MessageView:
        """
        Load one message as a MessageView.

        Raises:
            NotFoundError: Message does not exist
        """
        message = self.with_related(Message.objects.filter(pk=message_id)).first()
        if message is None:
            raise NotFoundError(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": message_id},
            )
        return self.populate(message)
