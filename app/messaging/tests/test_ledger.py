"""
Tests for UnreadLedger.

Covers:
- increment(): row creation and atomic updates
- increment() from many threads at once
- reset() / get(): clearing and defaults
- entries_for(): ordering
- reconcile() / reconcile_all(): rebuilding counters from receipts
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

import pytest
from django.db import connection

from messaging.models import UnreadLedgerEntry
from messaging.services import UnreadLedger
from messaging.tests.factories import UnreadLedgerEntryFactory


class TestIncrement:
    """Tests for UnreadLedger.increment()."""

    def test_first_increment_creates_row(self, ledger, alice, bob):
        at = datetime(2026, 3, 1, 9, 0, tzinfo=dt_timezone.utc)

        ledger.increment(bob.id, alice.id, at=at)

        entry = UnreadLedgerEntry.objects.get(owner=bob, counterpart=alice)
        assert entry.unread_count == 1
        assert entry.last_message_at == at

    def test_increments_accumulate(self, ledger, alice, bob):
        for _ in range(3):
            ledger.increment(bob.id, alice.id)

        assert ledger.get(bob.id, alice.id) == 3
        assert UnreadLedgerEntry.objects.count() == 1

    def test_pairs_are_directional(self, ledger, alice, bob):
        ledger.increment(bob.id, alice.id)

        assert ledger.get(bob.id, alice.id) == 1
        assert ledger.get(alice.id, bob.id) == 0

    def test_lost_create_race_updates_existing_row(self, ledger, alice, bob):
        """
        A concurrent writer creating the row first still gets counted.

        Why it matters: Two first messages arriving together must leave a
        count of two, not one and an IntegrityError.
        """
        UnreadLedgerEntryFactory(owner=bob, counterpart=alice, unread_count=1)
        calls = []

        def entry_without_first_update(owner_id, counterpart_id):
            queryset = UnreadLedgerEntry.objects.filter(
                owner_id=owner_id, counterpart_id=counterpart_id
            )
            if not calls:
                calls.append("miss")
                return UnreadLedgerEntry.objects.none()
            return queryset

        with patch.object(ledger, "_entry", side_effect=entry_without_first_update):
            ledger.increment(bob.id, alice.id)

        assert UnreadLedgerEntry.objects.get(owner=bob, counterpart=alice).unread_count == 2


@pytest.mark.django_db(transaction=True)
class TestConcurrentIncrement:
    """
    Increments from real threads, each on its own database connection.

    These need transaction=True so every thread sees committed rows.
    """

    def _run_in_threads(self, task, times):
        def run():
            connection.close()  # Force new connection for thread
            try:
                task()
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=times) as executor:
            futures = [executor.submit(run) for _ in range(times)]
            for future in as_completed(futures):
                future.result()

    def test_concurrent_first_increments_are_all_counted(self, alice, bob):
        """
        Threads racing to create the row still count every message.

        Why it matters: A burst of messages to a new conversation must not
        lose unread counts to the insert race.
        """
        self._run_in_threads(lambda: UnreadLedger().increment(bob.id, alice.id), times=10)

        assert UnreadLedgerEntry.objects.filter(owner=bob, counterpart=alice).count() == 1
        assert UnreadLedger().get(bob.id, alice.id) == 10

    def test_concurrent_increments_on_existing_row(self, alice, bob):
        UnreadLedgerEntryFactory(owner=bob, counterpart=alice, unread_count=5)

        self._run_in_threads(lambda: UnreadLedger().increment(bob.id, alice.id), times=8)

        assert UnreadLedger().get(bob.id, alice.id) == 13


class TestResetAndGet:
    """Tests for reset() and get()."""

    def test_get_without_row_is_zero(self, ledger, alice, bob):
        assert ledger.get(bob.id, alice.id) == 0

    def test_reset_clears_count(self, ledger, alice, bob):
        ledger.increment(bob.id, alice.id)
        ledger.increment(bob.id, alice.id)

        assert ledger.reset(bob.id, alice.id) is True
        assert ledger.get(bob.id, alice.id) == 0

    def test_reset_keeps_last_message_at(self, ledger, alice, bob):
        at = datetime(2026, 3, 1, 9, 0, tzinfo=dt_timezone.utc)
        ledger.increment(bob.id, alice.id, at=at)

        ledger.reset(bob.id, alice.id)

        assert UnreadLedgerEntry.objects.get(owner=bob).last_message_at == at

    def test_reset_when_already_zero(self, ledger, alice, bob):
        UnreadLedgerEntryFactory(owner=bob, counterpart=alice, unread_count=0)

        assert ledger.reset(bob.id, alice.id) is False

    def test_reset_without_row(self, ledger, alice, bob):
        assert ledger.reset(bob.id, alice.id) is False
        assert not UnreadLedgerEntry.objects.exists()


class TestEntriesFor:
    def test_most_recent_first_with_empty_rows_last(self, ledger, alice, bob, carol):
        UnreadLedgerEntryFactory(owner=bob, counterpart=bob, last_message_at=None)
        ledger.increment(bob.id, alice.id, at=datetime(2026, 3, 1, tzinfo=dt_timezone.utc))
        ledger.increment(bob.id, carol.id, at=datetime(2026, 3, 2, tzinfo=dt_timezone.utc))
        ledger.increment(alice.id, bob.id)

        counterparts = list(ledger.entries_for(bob.id).values_list("counterpart_id", flat=True))

        assert counterparts == [carol.id, alice.id, bob.id]


class TestReconcile:
    """Tests for reconcile() and reconcile_all()."""

    def test_repairs_drift(self, ledger, store, alice, bob, caplog):
        """
        A counter that drifted is rebuilt from receipts.

        Why it matters: reset() racing with a new message can leave the
        ledger off by one; reconcile is how that gets repaired.
        """
        first = store.create_message(alice, [bob.id], "one")
        store.create_message(alice, [bob.id], "two")
        store.mark_read(first.id, bob.id)
        UnreadLedgerEntryFactory(owner=bob, counterpart=alice, unread_count=7)

        with caplog.at_level("INFO"):
            assert ledger.reconcile(bob.id, alice.id) == 1

        assert ledger.get(bob.id, alice.id) == 1
        assert "Ledger drift" in caplog.text

    def test_creates_missing_row(self, ledger, store, alice, bob):
        message = store.create_message(alice, [bob.id], "one")

        assert ledger.reconcile(bob.id, alice.id) == 1

        entry = UnreadLedgerEntry.objects.get(owner=bob, counterpart=alice)
        assert entry.last_message_at == message.created_at

    def test_no_messages_no_row(self, ledger, alice, bob):
        assert ledger.reconcile(bob.id, alice.id) == 0
        assert not UnreadLedgerEntry.objects.exists()

    def test_consistent_counter_is_left_alone(self, ledger, store, alice, bob, caplog):
        message = store.create_message(alice, [bob.id], "one")
        ledger.increment(bob.id, alice.id, at=message.created_at)

        with caplog.at_level("INFO"):
            ledger.reconcile(bob.id, alice.id)

        assert "Ledger drift" not in caplog.text

    def test_reconcile_all_covers_messages_and_rows(self, ledger, store, alice, bob, carol):
        store.create_message(alice, [bob.id, carol.id], "hi")
        UnreadLedgerEntryFactory(owner=alice, counterpart=carol, unread_count=4)

        assert ledger.reconcile_all() == 3

        assert ledger.get(bob.id, alice.id) == 1
        assert ledger.get(carol.id, alice.id) == 1
        assert ledger.get(alice.id, carol.id) == 0

    def test_reconcile_all_for_one_owner(self, ledger, store, alice, bob, carol):
        store.create_message(alice, [bob.id, carol.id], "hi")

        assert ledger.reconcile_all(owner_id=bob.id) == 1

        assert ledger.get(bob.id, alice.id) == 1
        assert not UnreadLedgerEntry.objects.filter(owner=carol).exists()


@pytest.mark.parametrize("count", [1, 5])
def test_increment_then_reset_round(ledger, alice, bob, count):
    for _ in range(count):
        ledger.increment(bob.id, alice.id)

    ledger.reset(bob.id, alice.id)
    ledger.increment(bob.id, alice.id)

    assert ledger.get(bob.id, alice.id) == 1
