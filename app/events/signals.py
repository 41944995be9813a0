"""
Signals emitted by the events app.

team_changed:
    Sent after an event is created or a volunteer is accepted.
    Keyword arguments: event_id (int), member_ids (frozenset[int], manager
    included). The messaging app listens to create or extend the event
    chat group.
"""

from django.dispatch import Signal

team_changed = Signal()
