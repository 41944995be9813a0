"""Messaging services for persistence, unread counters, delivery and read receipts."""

from messaging.services.dispatcher import DeliveryDispatcher
from messaging.services.groups import EventChatService
from messaging.services.ledger import UnreadLedger
from messaging.services.queries import ConversationQueryService
from messaging.services.receipts import ReadReceiptSynchronizer
from messaging.services.store import MessageStore

__all__ = [
    "ConversationQueryService",
    "DeliveryDispatcher",
    "EventChatService",
    "MessageStore",
    "ReadReceiptSynchronizer",
    "UnreadLedger",
]
