"""
Event membership service layer.

Services:
    EventMembershipService: Event creation, membership lookup, team acceptance
        and the per-user event list used for the chat list

Design Principles:
    - Membership is read through an immutable EventMembership snapshot so
      the messaging layer never holds on to ORM instances
    - Team changes emit events.signals.team_changed inside the same transaction
    - Rejected commands raise core.exceptions errors

Usage:
    from events.services import EventMembershipService

    event = EventMembershipService.create_event(manager, title="Beach cleanup")
    EventMembershipService.accept_volunteer(event.id, manager, volunteer.id)

    membership = EventMembershipService.get_membership(event.id)
    assert membership.is_member(volunteer.id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db.models import Q

from core.converters import fits_db_id
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.services import BaseService
from events.models import Event
from events.signals import team_changed

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User


@dataclass(frozen=True)
class EventMembership:
    """
    Snapshot of who belongs to an event.

    Attributes:
        event_id: Event primary key
        manager_id: The event manager's user id
        member_ids: Manager plus accepted team members
    """

    event_id: int
    manager_id: int
    member_ids: frozenset[int]

    def is_member(self, user_id: int) -> bool:
        return user_id in self.member_ids


class EventMembershipService(BaseService):
    """
    Service for event membership.

    Methods:
        create_event: Create an event owned by an event manager
        get_membership: Read-only membership snapshot
        accept_volunteer: Add a volunteer to the team
        events_for_user: Events a user manages or belongs to
    """

    @classmethod
    def create_event(
        cls,
        manager: User,
        title: str,
        description: str = "",
        location: str = "",
        starts_at=None,
    ) -> Event:
        """
        Create an event with the manager as the first team member.

        Raises:
            PermissionDeniedError: Caller is not an event manager or admin
            ValidationError: Title is blank
        """
        if not manager.is_event_manager:
            raise PermissionDeniedError(
                "Only event managers can create events",
                error_code="NOT_EVENT_MANAGER",
            )
        title = (title or "").strip()
        if not title:
            raise ValidationError("Event title cannot be empty", error_code="EMPTY_TITLE")

        with cls.atomic():
            event = Event.objects.create(
                title=title,
                description=description,
                location=location,
                starts_at=starts_at,
                manager=manager,
            )
            event.team_members.add(manager)
            cls._notify_team_changed(event.id)

        cls.get_logger().info(f"Event {event.id} created by manager {manager.id}")
        return event

    @classmethod
    def get_membership(cls, event_id: int) -> EventMembership:
        """
        Load the membership of an event.

        Raises:
            NotFoundError: Event does not exist
        """
        manager_id = None
        if fits_db_id(event_id):
            manager_id = (
                Event.objects.filter(pk=event_id).values_list("manager_id", flat=True).first()
            )
        if manager_id is None:
            raise NotFoundError(
                f"Event {event_id} not found",
                error_code="EVENT_NOT_FOUND",
                details={"event_id": event_id},
            )

        team_ids = Event.team_members.through.objects.filter(
            event_id=event_id
        ).values_list("user_id", flat=True)

        return EventMembership(
            event_id=event_id,
            manager_id=manager_id,
            member_ids=frozenset([manager_id, *team_ids]),
        )

    @classmethod
    def accept_volunteer(
        cls,
        event_id: int,
        manager: User,
        volunteer_id: int,
    ) -> EventMembership:
        """
        Accept a volunteer onto the event team.

        Idempotent: accepting an existing member returns the unchanged
        membership and emits nothing.

        Raises:
            NotFoundError: Event or volunteer does not exist
            PermissionDeniedError: Caller is not the event's manager (or an admin)
        """
        membership = cls.get_membership(event_id)

        if manager.pk != membership.manager_id and not manager.is_superuser:
            raise PermissionDeniedError(
                "Only the event manager can accept volunteers",
                error_code="NOT_EVENT_MANAGER",
                details={"event_id": event_id},
            )

        User = get_user_model()
        if not (
            fits_db_id(volunteer_id)
            and User.objects.filter(pk=volunteer_id, is_active=True).exists()
        ):
            raise NotFoundError(
                f"User {volunteer_id} not found",
                error_code="USER_NOT_FOUND",
                details={"user_id": volunteer_id},
            )

        if membership.is_member(volunteer_id):
            return membership

        with cls.atomic():
            Event.team_members.through.objects.get_or_create(
                event_id=event_id, user_id=volunteer_id
            )
            cls._notify_team_changed(event_id)

        cls.get_logger().info(
            f"Volunteer {volunteer_id} accepted onto event {event_id} by {manager.id}"
        )
        return cls.get_membership(event_id)

    @classmethod
    def events_for_user(cls, user: User) -> QuerySet[Event]:
        """Events the user manages or is a team member of, newest first."""
        return (
            Event.objects.filter(Q(manager=user) | Q(team_members=user))
            .select_related("manager")
            .distinct()
            .order_by("-created_at", "-id")
        )

    @classmethod
    def _notify_team_changed(cls, event_id: int) -> None:
        # Receivers run inside the caller's transaction and roll back with it
        membership = cls.get_membership(event_id)
        team_changed.send(
            sender=Event,
            event_id=event_id,
            member_ids=membership.member_ids,
        )
