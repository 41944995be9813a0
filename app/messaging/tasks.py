"""
Celery tasks for the messaging app.

Tasks:
    reconcile_unread_ledger: Rebuild unread counters from read receipts

Scheduled by CELERY_BEAT_SCHEDULE in config/settings.py.

Usage:
    from messaging.tasks import reconcile_unread_ledger

    reconcile_unread_ledger.delay()            # every owner
    reconcile_unread_ledger.delay(owner_id=7)  # one owner
"""

import logging

from celery import shared_task

from messaging.services.ledger import UnreadLedger

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def reconcile_unread_ledger(self, owner_id: int | None = None) -> dict:
    """
    Periodic task to repair unread counter drift.

    Counters can drift when a message lands between a conversation read
    and the ledger reset. Receipts are the source of truth.

    Args:
        owner_id: Restrict to one owner; all owners when None

    Returns:
        Dict with the number of (owner, counterpart) pairs checked
    """
    checked = UnreadLedger().reconcile_all(owner_id=owner_id)
    logger.info(
        f"Reconciled {checked} unread counter(s)"
        + (f" for user {owner_id}" if owner_id is not None else "")
    )
    return {"checked": checked}
