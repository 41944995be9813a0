"""
Celery configuration for the Django application.

Celery runs background and periodic work for the project, such as the
nightly reconciliation of unread counters against read receipts.

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    from messaging.tasks import reconcile_unread_ledger

    reconcile_unread_ledger.delay(owner_id=user.id)

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
