"""
Read-side queries over the inbox.

Services:
    ConversationQueryService: Sender summaries and unread lookups

Usage:
    result = ConversationQueryService.senders_for(request.user)
    if result.success:
        payload = [summary.to_payload() for summary in result.data]
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models import OuterRef, Subquery

from core.converters import fits_db_id
from core.services import BaseService, ServiceResult
from messaging.dto import SenderSummary
from messaging.models import Message, MessageRecipient
from messaging.services.ledger import UnreadLedger

if TYPE_CHECKING:
    from authentication.models import User


class ConversationQueryService(BaseService):
    """
    Query service for the inbox.

    Methods:
        senders_for: One summary per user who has messaged the owner
        unread_count: Ledger count for (owner, counterpart)
    """

    @classmethod
    def senders_for(cls, user: User) -> ServiceResult[list[SenderSummary]]:
        """
        Summaries of everyone who has messaged user, newest first.

        Unread counts come from the ledger, not from receipts.
        """
        try:
            addressed = MessageRecipient.objects.filter(recipient_id=user.pk).values("message_id")
            latest = Message.objects.filter(
                sender_id=OuterRef("pk"), pk__in=addressed
            ).order_by("-created_at", "-id")

            senders = (
                get_user_model()
                .objects.filter(sent_messages__in=addressed)
                .distinct()
                .annotate(
                    last_message=Subquery(latest.values("text")[:1]),
                    last_message_at=Subquery(latest.values("created_at")[:1]),
                )
                .order_by("-last_message_at", "-id")
            )
            unread = dict(
                UnreadLedger().entries_for(user.pk).values_list("counterpart_id", "unread_count")
            )

            return ServiceResult.success(
                [
                    SenderSummary(
                        counterpart_id=sender.pk,
                        counterpart_name=sender.display_name,
                        last_message=sender.last_message,
                        last_message_at=sender.last_message_at,
                        unread_count=unread.get(sender.pk, 0),
                    )
                    for sender in senders
                ]
            )
        except DatabaseError as e:
            return cls.handle_exception(e, f"Loading senders for user {user.pk}")

    @classmethod
    def unread_count(cls, user: User, counterpart_id: int) -> ServiceResult[int]:
        if not (
            fits_db_id(counterpart_id)
            and get_user_model().objects.filter(pk=counterpart_id).exists()
        ):
            return ServiceResult.failure(
                "User not found",
                error_code="USER_NOT_FOUND",
            )
        return ServiceResult.success(UnreadLedger().get(user.pk, counterpart_id))
