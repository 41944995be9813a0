"""
Event models.

Models:
    Event: A volunteering event owned by an event manager, with the team of
        volunteers accepted onto it

Related files:
    - services.py: Membership queries and team acceptance
    - signals.py: team_changed, emitted whenever the team grows
"""

from django.conf import settings
from django.db import models

from core.models import BaseModel


class Event(BaseModel):
    """
    A volunteering event.

    Fields:
        title: Event title
        description: Free text description
        location: Where the event takes place
        starts_at: When the event starts (optional)
        manager: Event manager who created the event
        team_members: Accepted volunteers (the manager is added on creation)

    Note:
        Team membership only grows here; removal is not part of the
        accept/reject workflow this app implements.
    """

    title = models.CharField(
        max_length=200,
        help_text="Event title",
    )
    description = models.TextField(
        blank=True,
        help_text="Event description",
    )
    location = models.CharField(
        max_length=255,
        blank=True,
        help_text="Where the event takes place",
    )
    starts_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event starts",
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="managed_events",
        help_text="Event manager who owns this event",
    )
    team_members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="team_events",
        help_text="Users accepted onto the event team",
    )

    class Meta:
        db_table = "events_event"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["manager", "-created_at"],
                name="events_manager_recent_idx",
            ),
        ]

    def __str__(self):
        return self.title
