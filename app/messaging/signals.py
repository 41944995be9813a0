"""
Signal handlers for the messaging app.

Handlers:
    sync_event_chat_group: Creates or extends an event's chat group when
        its team changes (events.signals.team_changed)

Connected when the app is ready (see apps.py).
"""

from __future__ import annotations

import logging

from django.dispatch import receiver

from events.signals import team_changed
from messaging.services.groups import EventChatService

logger = logging.getLogger(__name__)


@receiver(team_changed, dispatch_uid="messaging.sync_event_chat_group")
def sync_event_chat_group(sender, event_id, member_ids, **kwargs):
    """Keep the event chat membership equal to the event team."""
    EventChatService.ensure_group(event_id, member_ids)
    logger.debug(f"Chat group for event {event_id} synced with {len(member_ids)} member(s)")
