"""
Tests for the room registry.

The in-memory backend is exercised directly; the Redis backend is checked
against a mocked django_redis connection for key layout only.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings

from messaging.realtime.registry import (
    InMemoryRoomBackend,
    RedisRoomBackend,
    RoomRegistry,
    room_for_event,
    room_for_user,
)


class TestRoomKeys:
    def test_user_and_event_rooms_never_collide(self):
        """
        User 7 and event 7 get different rooms.

        Why it matters: A broadcast to event 7 must not reach user 7's
        private sockets, and vice versa.
        """
        assert room_for_user(7) == "user:7"
        assert room_for_event(7) == "event:7"
        assert room_for_user(7) != room_for_event(7)


class TestInMemoryRegistry:
    """Tests for RoomRegistry over InMemoryRoomBackend."""

    def test_join_and_lookup(self, registry):
        registry.join("user:1", "conn-a")
        registry.join("user:1", "conn-b")

        assert registry.connections_for("user:1") == frozenset({"conn-a", "conn-b"})
        assert registry.rooms_for("conn-a") == frozenset({"user:1"})

    def test_join_is_idempotent(self, registry):
        registry.join("user:1", "conn-a")
        registry.join("user:1", "conn-a")

        assert registry.connections_for("user:1") == frozenset({"conn-a"})

    def test_unknown_room_is_empty(self, registry):
        assert registry.connections_for("user:404") == frozenset()

    def test_leave_removes_from_every_room(self, registry):
        registry.join("user:1", "conn-a")
        registry.join("event:9", "conn-a")
        registry.join("event:9", "conn-b")

        rooms = registry.leave("conn-a")

        assert rooms == frozenset({"user:1", "event:9"})
        assert registry.connections_for("user:1") == frozenset()
        assert registry.connections_for("event:9") == frozenset({"conn-b"})
        assert registry.rooms_for("conn-a") == frozenset()

    def test_leave_twice_is_noop(self, registry):
        registry.join("user:1", "conn-a")
        registry.leave("conn-a")

        assert registry.leave("conn-a") == frozenset()

    def test_leave_room_keeps_other_rooms(self, registry):
        registry.join("user:1", "conn-a")
        registry.join("event:9", "conn-a")

        registry.leave_room("event:9", "conn-a")

        assert registry.rooms_for("conn-a") == frozenset({"user:1"})
        assert registry.connections_for("event:9") == frozenset()

    def test_touch_returns_current_rooms(self, registry):
        registry.join("user:1", "conn-a")
        registry.join("event:9", "conn-a")

        assert registry.touch("conn-a") == frozenset({"user:1", "event:9"})
        assert registry.touch("conn-gone") == frozenset()

    def test_no_empty_rooms_left_behind(self):
        backend = InMemoryRoomBackend()
        registry = RoomRegistry(backend)
        registry.join("user:1", "conn-a")
        registry.join("event:2", "conn-a")
        registry.leave_room("event:2", "conn-a")
        registry.leave("conn-a")

        assert backend._rooms == {}
        assert backend._connections == {}

    def test_returned_sets_are_snapshots(self, registry):
        registry.join("user:1", "conn-a")
        snapshot = registry.connections_for("user:1")

        registry.join("user:1", "conn-b")

        assert snapshot == frozenset({"conn-a"})

    def test_concurrent_joins_and_leaves(self):
        """
        Many threads joining and leaving never lose or leak connections.

        Why it matters: Consumers on different threads connect and
        disconnect at the same time; a lost join means missed pushes and a
        leaked one means pushes to dead channels.
        """
        backend = InMemoryRoomBackend(stripes=4)
        registry = RoomRegistry(backend)
        errors = []

        def worker(index):
            connection = f"conn-{index}"
            try:
                for round_ in range(50):
                    registry.join(room_for_user(index % 5), connection)
                    registry.join(room_for_event(round_ % 3), connection)
                    registry.leave(connection)
                registry.join(room_for_user(index % 5), connection)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        total = sum(len(registry.connections_for(room_for_user(i))) for i in range(5))
        assert total == 20
        assert all(registry.connections_for(room_for_event(i)) == frozenset() for i in range(3))


class TestFromSettings:
    @override_settings(MESSAGING={"ROOM_BACKEND": "memory"})
    def test_memory_backend(self):
        registry = RoomRegistry.from_settings()

        assert isinstance(registry.backend, InMemoryRoomBackend)

    @override_settings(MESSAGING={"ROOM_BACKEND": "carrier-pigeon"})
    def test_unknown_backend(self):
        with pytest.raises(ImproperlyConfigured):
            RoomRegistry.from_settings()

    @override_settings(MESSAGING={"ROOM_BACKEND": "redis", "REDIS_ALIAS": "default"})
    def test_redis_backend_uses_django_redis(self):
        with patch("django_redis.get_redis_connection") as get_connection:
            registry = RoomRegistry.from_settings()

        get_connection.assert_called_once_with("default")
        assert isinstance(registry.backend, RedisRoomBackend)


class TestRedisBackend:
    """Key layout of RedisRoomBackend against a mocked client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.register_script.side_effect = lambda source: MagicMock(name=source[:20])
        return client

    @pytest.fixture
    def backend(self, client):
        with patch("django_redis.get_redis_connection", return_value=client):
            return RedisRoomBackend(ttl_seconds=60)

    def test_join_runs_script_with_namespaced_keys(self, backend):
        backend.join("user:1", "conn-a")

        backend._lua_join.assert_called_once_with(
            keys=["presence:room:user:1", "presence:conn:conn-a"],
            args=["user:1", "conn-a", 60],
        )

    def test_leave_decodes_rooms(self, backend):
        backend._lua_leave.return_value = [b"user:1", b"event:2"]

        assert backend.leave("conn-a") == frozenset({"user:1", "event:2"})
        backend._lua_leave.assert_called_once_with(
            keys=["presence:conn:conn-a"],
            args=["presence:room:", "conn-a"],
        )

    def test_connections_for_prunes_through_script(self, backend):
        """
        Room lookups go through the pruning script, not a bare SMEMBERS.

        Why it matters: A member whose connection entry expired must not
        keep receiving pushes or linger in the room set.
        """
        backend._lua_connections.return_value = [b"conn-a", "conn-b"]

        assert backend.connections_for("event:2") == frozenset({"conn-a", "conn-b"})
        backend._lua_connections.assert_called_once_with(
            keys=["presence:room:event:2"],
            args=["presence:conn:", "event:2"],
        )

    def test_touch_refreshes_ttl_of_every_room(self, backend):
        backend._lua_touch.return_value = [b"user:1", b"event:2"]

        assert backend.touch("conn-a") == frozenset({"user:1", "event:2"})
        backend._lua_touch.assert_called_once_with(
            keys=["presence:conn:conn-a"],
            args=["presence:room:", 60],
        )

    def test_touch_of_expired_connection(self, backend):
        backend._lua_touch.return_value = []

        assert backend.touch("conn-a") == frozenset()
