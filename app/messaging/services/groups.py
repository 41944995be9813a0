"""
Event chat groups.

One EventChatGroup per event, created lazily on team formation or on the
first broadcast. Appends are serialized per group with an optimistic
version check: an append only lands if the group's version is unchanged
since it was read, and the new version becomes the message sequence.

Usage:
    from messaging.services.groups import EventChatService

    group = EventChatService.ensure_group(event.id, membership.member_ids)
    message = EventChatService.append(group, sender, "Meet at gate B", recipient_ids=[...])
    history = EventChatService.history(event.id, user)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import F, OuterRef, Subquery
from django.utils import timezone

from core.exceptions import PermissionDeniedError
from core.services import BaseService
from events.services import EventMembershipService
from messaging.dto import EventChatMessageView, EventChatSummary
from messaging.exceptions import ChatGroupBusyError
from messaging.models import EventChatGroup, EventChatMessage

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from authentication.models import User


class EventChatService(BaseService):
    """
    Service for event chat groups.

    Methods:
        ensure_group: Get or create the group and add missing members
        append: Optimistically append one message
        history: Messages of an event chat, for members only
        chat_list: Event chats a user can see, most recent first
        populate: Build an EventChatMessageView
    """

    @classmethod
    def ensure_group(cls, event_id: int, member_ids: Iterable[int]) -> EventChatGroup:
        """
        Return the event's chat group, creating it if needed.

        Members only ever get added; ids already present are skipped.
        """
        group, created = EventChatGroup.objects.get_or_create(event_id=event_id)
        if created:
            cls.get_logger().info(f"Created chat group {group.id} for event {event_id}")

        current = set(group.members.values_list("pk", flat=True))
        missing = sorted(set(member_ids) - current)
        if missing:
            group.members.add(*missing)
            cls.get_logger().debug(
                f"Added {len(missing)} member(s) to chat group for event {event_id}"
            )
        return group

    @classmethod
    def _claim_next_sequence(cls, group_id: int, at: datetime) -> int | None:
        """
        Bump the group version if nobody else did since we read it.

        Returns:
            The claimed sequence, or None when a concurrent append won
        """
        version = EventChatGroup.objects.filter(pk=group_id).values_list("version", flat=True).get()
        claimed = EventChatGroup.objects.filter(pk=group_id, version=version).update(
            version=F("version") + 1,
            last_message_at=at,
            updated_at=at,
        )
        return version + 1 if claimed else None

    @classmethod
    def append(
        cls,
        group: EventChatGroup,
        sender: User,
        text: str,
        media_url: str = "",
        recipient_ids: Iterable[int] = (),
        max_retries: int = 5,
    ) -> EventChatMessage:
        """
        Append a message to the group.

        Raises:
            ChatGroupBusyError: Every attempt lost to a concurrent append
        """
        recipient_ids = list(recipient_ids)
        for attempt in range(1, max_retries + 1):
            now = timezone.now()
            with cls.atomic():
                sequence = cls._claim_next_sequence(group.pk, now)
                if sequence is not None:
                    message = EventChatMessage.objects.create(
                        group=group,
                        sender=sender,
                        text=text,
                        media_url=media_url,
                        sequence=sequence,
                    )
                    message.recipients.set(recipient_ids)
                    return message

            cls.get_logger().debug(
                f"Append to chat group {group.pk} lost a race (attempt {attempt}/{max_retries})"
            )

        cls.get_logger().warning(
            f"Append to chat group {group.pk} gave up after {max_retries} attempts"
        )
        raise ChatGroupBusyError(
            "Event chat is busy, please retry",
            details={"event_id": group.event_id},
        )

    @classmethod
    def history(cls, event_id: int, user: User) -> list[EventChatMessageView]:
        """
        Event chat messages in append order.

        Raises:
            NotFoundError: Event does not exist
            PermissionDeniedError: User is not on the event team
        """
        membership = EventMembershipService.get_membership(event_id)
        if not membership.is_member(user.pk):
            raise PermissionDeniedError(
                "Only team members can read this event chat",
                error_code="NOT_EVENT_MEMBER",
                details={"event_id": event_id},
            )

        messages = (
            EventChatMessage.objects.filter(group__event_id=event_id)
            .select_related("sender", "group")
            .prefetch_related("recipients")
            .order_by("sequence")
        )
        return [cls.populate(message) for message in messages]

    @classmethod
    def chat_list(cls, user: User) -> list[EventChatSummary]:
        """Events the user belongs to, most recently active chat first."""
        last_message_at = EventChatGroup.objects.filter(event_id=OuterRef("pk")).values(
            "last_message_at"
        )[:1]
        events = (
            EventMembershipService.events_for_user(user)
            .annotate(chat_last_message_at=Subquery(last_message_at))
            .order_by(F("chat_last_message_at").desc(nulls_last=True), "-created_at", "-id")
        )
        return [
            EventChatSummary(
                event_id=event.id,
                title=event.title,
                manager_id=event.manager_id,
                last_message_at=event.chat_last_message_at,
            )
            for event in events
        ]

    @staticmethod
    def populate(message: EventChatMessage) -> EventChatMessageView:
        return EventChatMessageView(
            id=message.id,
            event_id=message.group.event_id,
            sender_id=message.sender_id,
            sender_name=message.sender.display_name,
            text=message.text,
            media_url=message.media_url,
            recipient_ids=tuple(sorted(user.pk for user in message.recipients.all())),
            sequence=message.sequence,
            created_at=message.created_at,
        )
