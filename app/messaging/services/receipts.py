"""
Read-receipt synchronizer.

Marks a whole conversation read for one reader, resets the reader's
ledger entry once and tells the counterpart with a single batched
messageRead push.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.utils import timezone

from core.converters import fits_db_id
from core.exceptions import NotFoundError
from core.services import BaseService
from messaging.constants import PushEvent
from messaging.dto import ReadResult
from messaging.realtime.registry import room_for_user

if TYPE_CHECKING:
    from authentication.models import User
    from messaging.realtime.transport import PushTransport
    from messaging.services.ledger import UnreadLedger
    from messaging.services.store import MessageStore


class ReadReceiptSynchronizer(BaseService):
    """Keeps receipts, the ledger and the counterpart's sockets in step."""

    def __init__(self, store: MessageStore, ledger: UnreadLedger, transport: PushTransport):
        self.store = store
        self.ledger = ledger
        self.transport = transport

    def mark_conversation_read(self, reader: User, counterpart_id: int) -> ReadResult:
        """
        Mark every unread message from counterpart to reader as read.

        Safe to repeat: with nothing unread the call writes no receipts and
        sends no push.

        Raises:
            NotFoundError: Counterpart does not exist
        """
        if not (
            fits_db_id(counterpart_id)
            and get_user_model().objects.filter(pk=counterpart_id).exists()
        ):
            raise NotFoundError(
                f"User {counterpart_id} not found",
                error_code="USER_NOT_FOUND",
                details={"user_id": counterpart_id},
            )

        read_at = timezone.now()
        unread_ids = list(
            self.store.find_unread_from(counterpart_id, reader.pk).values_list("id", flat=True)
        )
        transitioned = tuple(
            message_id
            for message_id in unread_ids
            if self.store.mark_read(message_id, reader.pk, read_at=read_at)
        )
        self.ledger.reset(reader.pk, counterpart_id)

        result = ReadResult(
            reader_id=reader.pk,
            counterpart_id=counterpart_id,
            message_ids=transitioned,
            read_at=read_at,
        )
        if transitioned:
            self.transport.send_to_room(
                room_for_user(counterpart_id), PushEvent.MESSAGE_READ, result.to_payload()
            )
            self.get_logger().debug(
                f"User {reader.pk} read {len(transitioned)} message(s) from {counterpart_id}"
            )
        return result
