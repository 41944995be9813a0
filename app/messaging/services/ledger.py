"""
Unread ledger: per (owner, counterpart) unread counters.

The ledger is a cache over read receipts. Every write is a single-row
UPDATE using an F expression, so concurrent increments and resets on the
same row never lose updates.

Usage:
    from messaging.services.ledger import UnreadLedger

    ledger = UnreadLedger()
    ledger.increment(owner_id=bob.id, counterpart_id=alice.id)
    ledger.get(bob.id, alice.id)  # 1
    ledger.reset(bob.id, alice.id)  # True
    ledger.reconcile(bob.id, alice.id)  # rebuild from receipts
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from messaging.models import Message, MessageRecipient, UnreadLedgerEntry
from messaging.services.store import MessageStore

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet


class UnreadLedger(BaseService):
    """
    Atomic unread counters.

    Methods:
        increment: Add one unread message from counterpart to owner
        reset: Zero the counter for (owner, counterpart)
        get: Current counter value (0 if no row)
        entries_for: All counters of an owner, most recent first
        reconcile: Recompute one counter from read receipts
        reconcile_all: Recompute every counter (optionally for one owner)
    """

    def __init__(self, store: MessageStore | None = None):
        self.store = store or MessageStore()

    def _entry(self, owner_id: int, counterpart_id: int) -> QuerySet[UnreadLedgerEntry]:
        return UnreadLedgerEntry.objects.filter(owner_id=owner_id, counterpart_id=counterpart_id)

    def increment(self, owner_id: int, counterpart_id: int, at: datetime | None = None) -> None:
        """
        Add one to the counter, creating the row on first use.

        Safe under concurrency: the update is atomic in the database and a
        lost create race falls back to updating the winner's row.
        """
        at = at or timezone.now()
        changes = {
            "unread_count": F("unread_count") + 1,
            "last_message_at": at,
            "updated_at": timezone.now(),
        }

        if self._entry(owner_id, counterpart_id).update(**changes):
            return

        try:
            with transaction.atomic():
                UnreadLedgerEntry.objects.create(
                    owner_id=owner_id,
                    counterpart_id=counterpart_id,
                    unread_count=1,
                    last_message_at=at,
                )
        except IntegrityError:
            self._entry(owner_id, counterpart_id).update(**changes)

    def reset(self, owner_id: int, counterpart_id: int) -> bool:
        """
        Set the counter to zero.

        Returns:
            True if a non-zero counter was cleared
        """
        cleared = self._entry(owner_id, counterpart_id).filter(unread_count__gt=0).update(
            unread_count=0, updated_at=timezone.now()
        )
        return cleared > 0

    def get(self, owner_id: int, counterpart_id: int) -> int:
        count = (
            self._entry(owner_id, counterpart_id)
            .values_list("unread_count", flat=True)
            .first()
        )
        return count or 0

    def entries_for(self, owner_id: int) -> QuerySet[UnreadLedgerEntry]:
        return UnreadLedgerEntry.objects.filter(owner_id=owner_id).order_by(
            F("last_message_at").desc(nulls_last=True), "-id"
        )

    def reconcile(self, owner_id: int, counterpart_id: int) -> int:
        """
        Rebuild the counter for (owner, counterpart) from receipts.

        Returns:
            The reconciled count
        """
        actual = self.store.unread_count(owner_id, counterpart_id)
        last_message_at = (
            Message.objects.filter(
                sender_id=counterpart_id,
                recipient_links__recipient_id=owner_id,
            )
            .order_by("-created_at")
            .values_list("created_at", flat=True)
            .first()
        )
        if last_message_at is None and not self._entry(owner_id, counterpart_id).exists():
            return 0

        entry, created = UnreadLedgerEntry.objects.get_or_create(
            owner_id=owner_id,
            counterpart_id=counterpart_id,
            defaults={"unread_count": actual, "last_message_at": last_message_at},
        )
        if not created and (
            entry.unread_count != actual or entry.last_message_at != last_message_at
        ):
            self.get_logger().info(
                f"Ledger drift for {owner_id} <- {counterpart_id}: "
                f"{entry.unread_count} -> {actual}"
            )
            self._entry(owner_id, counterpart_id).update(
                unread_count=actual,
                last_message_at=last_message_at,
                updated_at=timezone.now(),
            )
        return actual

    def reconcile_all(self, owner_id: int | None = None) -> int:
        """
        Reconcile every (owner, counterpart) pair that has messages or a row.

        Returns:
            Number of pairs checked
        """
        pairs_qs = MessageRecipient.objects.values_list("recipient_id", "message__sender_id")
        entries_qs = UnreadLedgerEntry.objects.values_list("owner_id", "counterpart_id")
        if owner_id is not None:
            pairs_qs = pairs_qs.filter(recipient_id=owner_id)
            entries_qs = entries_qs.filter(owner_id=owner_id)

        pairs = set(pairs_qs.distinct()) | set(entries_qs)
        for owner, counterpart in sorted(pairs):
            self.reconcile(owner, counterpart)
        return len(pairs)
