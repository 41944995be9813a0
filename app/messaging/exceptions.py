"""
Messaging-specific exceptions and warnings.

Exception Hierarchy:
    ChatGroupBusyError - Event chat append lost the optimistic race too
        many times (inherits ConflictError)

Warnings:
    PartialDeliveryWarning - A message was persisted but the fan-out step
        for some recipients failed. Never raised to callers: it is logged
        and reflected in Delivery.failed_recipients.

Usage:
    from messaging.exceptions import ChatGroupBusyError, PartialDeliveryWarning
"""

from __future__ import annotations

from core.exceptions import ConflictError


class ChatGroupBusyError(ConflictError):
    """
    Raised when an event chat broadcast could not be appended.

    Every attempt found the group's version changed by a concurrent
    broadcast. The client may retry.
    """

    default_error_code: str = "CHAT_GROUP_BUSY"


class PartialDeliveryWarning(UserWarning):
    """
    Some recipients did not get their ledger update or push.

    Attributes:
        message_id: Persisted message id
        recipient_id: Recipient whose fan-out step failed
        cause: The underlying exception
    """

    def __init__(self, message_id, recipient_id, cause: Exception):
        self.message_id = message_id
        self.recipient_id = recipient_id
        self.cause = cause
        super().__init__(
            f"Delivery of message {message_id} to user {recipient_id} "
            f"was incomplete: {cause!r}"
        )
