"""
Test configuration and fixtures for messaging tests.

Components are wired by hand around a RecordingChannelLayer so tests can
assert exactly what was pushed to which connection without a running
consumer.

Usage:
    def test_example(dispatcher, registry, channel_layer, volunteer):
        registry.join(room_for_user(volunteer.id), "bob-phone")
        dispatcher.send_message(sender, [volunteer.id], "hi")
        assert channel_layer.events_for("bob-phone") == [("receiveMessage", {...})]
"""

import pytest

from authentication.models import UserRole
from authentication.tests.factories import UserFactory
from messaging.realtime.registry import InMemoryRoomBackend, RoomRegistry
from messaging.realtime.transport import PushTransport
from messaging.services import (
    DeliveryDispatcher,
    MessageStore,
    ReadReceiptSynchronizer,
    UnreadLedger,
)


class RecordingChannelLayer:
    """
    Channel layer double that records sends.

    Channels listed in failing raise on send, like a full or unreachable
    layer would.
    """

    def __init__(self):
        self.sent = []
        self.failing = set()

    async def send(self, channel, message):
        if channel in self.failing:
            raise ConnectionError(f"channel {channel} unavailable")
        self.sent.append((channel, message))

    def events_for(self, channel):
        return [
            (message["event"], message["payload"])
            for sent_to, message in self.sent
            if sent_to == channel
        ]

    def channels_for(self, event):
        return sorted(channel for channel, message in self.sent if message["event"] == event)


@pytest.fixture
def alice(db):
    return UserFactory(name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(name="Bob")


@pytest.fixture
def carol(db):
    return UserFactory(name="Carol")


@pytest.fixture
def manager(db):
    return UserFactory(name="Morgan", role=UserRole.EVENT_MANAGER)


@pytest.fixture
def channel_layer():
    return RecordingChannelLayer()


@pytest.fixture
def registry():
    return RoomRegistry(InMemoryRoomBackend())


@pytest.fixture
def transport(channel_layer, registry):
    return PushTransport(channel_layer, registry)


@pytest.fixture
def store():
    return MessageStore()


@pytest.fixture
def ledger(store):
    return UnreadLedger(store)


@pytest.fixture
def dispatcher(store, ledger, registry, transport):
    return DeliveryDispatcher(
        store=store,
        ledger=ledger,
        registry=registry,
        transport=transport,
        broadcast_max_retries=3,
    )


@pytest.fixture
def synchronizer(store, ledger, transport):
    return ReadReceiptSynchronizer(store=store, ledger=ledger, transport=transport)
