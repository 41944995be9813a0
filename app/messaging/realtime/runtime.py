"""
Messaging runtime: the owned realtime resources of a process.

MessagingConfig.ready() creates one runtime and starts it; views and
consumers ask it for wired components instead of reaching for globals.

Usage:
    from messaging.realtime.runtime import get_runtime

    dispatcher = get_runtime().dispatcher()
    delivery = dispatcher.send_message(request.user, [bob.id], "Hi")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from channels.layers import get_channel_layer
from django.apps import apps
from django.core.exceptions import ImproperlyConfigured

from messaging.realtime.registry import RoomRegistry
from messaging.realtime.transport import PushTransport

if TYPE_CHECKING:
    from messaging.services.dispatcher import DeliveryDispatcher
    from messaging.services.receipts import ReadReceiptSynchronizer

logger = logging.getLogger(__name__)


class MessagingRuntime:
    """
    Lifecycle holder for the room registry and push transport.

    Methods:
        start: Build registry and transport from settings
        stop: Release them; the runtime can be started again
        dispatcher / synchronizer: Components wired to this runtime
    """

    def __init__(self):
        self._registry: RoomRegistry | None = None
        self._transport: PushTransport | None = None

    @property
    def started(self) -> bool:
        return self._transport is not None

    def start(self, registry: RoomRegistry | None = None, channel_layer=None) -> None:
        if self.started:
            return
        channel_layer = channel_layer or get_channel_layer()
        if channel_layer is None:
            raise ImproperlyConfigured("CHANNEL_LAYERS must define a default layer")
        self._registry = registry or RoomRegistry.from_settings()
        self._transport = PushTransport(channel_layer, self._registry)
        logger.info("Messaging runtime started")

    def stop(self) -> None:
        if not self.started:
            return
        self._registry = None
        self._transport = None
        logger.info("Messaging runtime stopped")

    @property
    def registry(self) -> RoomRegistry:
        self._require_started()
        return self._registry

    @property
    def transport(self) -> PushTransport:
        self._require_started()
        return self._transport

    def dispatcher(self) -> DeliveryDispatcher:
        from messaging.services import DeliveryDispatcher, MessageStore, UnreadLedger

        store = MessageStore()
        return DeliveryDispatcher(
            store=store,
            ledger=UnreadLedger(store),
            registry=self.registry,
            transport=self.transport,
        )

    def synchronizer(self) -> ReadReceiptSynchronizer:
        from messaging.services import MessageStore, ReadReceiptSynchronizer, UnreadLedger

        store = MessageStore()
        return ReadReceiptSynchronizer(
            store=store,
            ledger=UnreadLedger(store),
            transport=self.transport,
        )

    def _require_started(self) -> None:
        if not self.started:
            raise ImproperlyConfigured(
                "Messaging runtime is not started; MessagingConfig.ready() starts it"
            )


def get_runtime() -> MessagingRuntime:
    """Runtime owned by the messaging app config."""
    return apps.get_app_config("messaging").runtime
