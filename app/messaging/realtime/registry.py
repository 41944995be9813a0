"""
Presence/room registry.

Maps logical rooms to the live channel names (connections) registered in
them. Rooms are namespaced so user and event ids never collide:

    user:<user_id>    personal room, every socket of a user
    event:<event_id>  broadcast room, sockets viewing an event chat

Two backends share one interface:
    RedisRoomBackend: Sets in Redis, mutated by Lua scripts so each join
        and leave is atomic without a global lock
    InMemoryRoomBackend: Dicts guarded by striped locks, for tests and
        single-process deployments

Usage:
    from messaging.realtime.registry import RoomRegistry, room_for_user

    registry = RoomRegistry.from_settings()
    registry.join(room_for_user(user.id), channel_name)
    registry.connections_for(room_for_user(user.id))  # frozenset
    registry.touch(channel_name)  # heartbeat, keeps entries from expiring
    registry.leave(channel_name)  # on disconnect, safe to repeat
"""

from __future__ import annotations

import logging
import threading
import zlib
from collections import defaultdict
from contextlib import ExitStack

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from messaging.constants import ROOM_CONFIG

logger = logging.getLogger(__name__)


def room_for_user(user_id) -> str:
    """Personal room key for a user."""
    return f"{ROOM_CONFIG.USER_ROOM_PREFIX}:{user_id}"


def room_for_event(event_id) -> str:
    """Broadcast room key for an event chat."""
    return f"{ROOM_CONFIG.EVENT_ROOM_PREFIX}:{event_id}"


# =============================================================================
# In-memory backend
# =============================================================================


class InMemoryRoomBackend:
    """
    Process-local room registry.

    Each room and each connection hashes onto one of a fixed set of lock
    stripes. join/leave take only the stripes of the keys they touch,
    always in ascending stripe order, so unrelated rooms never contend.
    """

    def __init__(self, stripes: int = ROOM_CONFIG.LOCK_STRIPES):
        self._locks = [threading.Lock() for _ in range(stripes)]
        self._rooms: dict[str, set[str]] = defaultdict(set)
        self._connections: dict[str, set[str]] = defaultdict(set)

    def _stripe(self, key: str) -> int:
        return zlib.crc32(key.encode()) % len(self._locks)

    def _locked(self, *keys: str) -> ExitStack:
        stack = ExitStack()
        for index in sorted({self._stripe(key) for key in keys}):
            stack.enter_context(self._locks[index])
        return stack

    def join(self, room: str, connection: str) -> None:
        with self._locked(room, connection):
            self._rooms[room].add(connection)
            self._connections[connection].add(room)

    def leave_room(self, room: str, connection: str) -> None:
        with self._locked(room, connection):
            self._discard(room, connection)

    def leave(self, connection: str) -> frozenset[str]:
        while True:
            with self._locked(connection):
                rooms = frozenset(self._connections.get(connection, ()))
            if not rooms:
                return frozenset()

            with self._locked(connection, *rooms):
                # The room set changed between the two locks; take the new stripes
                if frozenset(self._connections.get(connection, ())) != rooms:
                    continue
                del self._connections[connection]
                for room in rooms:
                    members = self._rooms.get(room)
                    if members is not None:
                        members.discard(connection)
                        if not members:
                            del self._rooms[room]
                return rooms

    def touch(self, connection: str) -> frozenset[str]:
        # Entries never expire in process memory
        return self.rooms_for(connection)

    def connections_for(self, room: str) -> frozenset[str]:
        with self._locked(room):
            return frozenset(self._rooms.get(room, ()))

    def rooms_for(self, connection: str) -> frozenset[str]:
        with self._locked(connection):
            return frozenset(self._connections.get(connection, ()))

    def _discard(self, room: str, connection: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        rooms = self._connections.get(connection)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._connections[connection]


# =============================================================================
# Redis backend
# =============================================================================


class RedisRoomBackend:
    """
    Redis-backed room registry shared by every ASGI worker.

    Keys:
        presence:room:<room>        SET of channel names in the room
        presence:conn:<channel>     SET of rooms the channel joined

    Both keys carry a short TTL. Live sockets re-arm it through touch()
    on every heartbeat; entries left behind by a crashed worker expire on
    their own, and connections_for() prunes room members whose
    connection entry no longer lists the room.

    LUA_LEAVE, LUA_TOUCH and LUA_CONNECTIONS derive keys from set members
    instead of receiving them in KEYS, so they need a single-node Redis
    (not Redis Cluster).
    """

    # Keys: [room_key, connection_key]
    # Args: [room, connection, ttl_seconds]
    LUA_JOIN = """
    redis.call('SADD', KEYS[1], ARGV[2])
    redis.call('EXPIRE', KEYS[1], ARGV[3])
    redis.call('SADD', KEYS[2], ARGV[1])
    redis.call('EXPIRE', KEYS[2], ARGV[3])
    return 1
    """

    # Keys: [room_key, connection_key]
    # Args: [room, connection]
    LUA_LEAVE_ROOM = """
    redis.call('SREM', KEYS[1], ARGV[2])
    redis.call('SREM', KEYS[2], ARGV[1])
    return 1
    """

    # Keys: [connection_key]
    # Args: [room_key_prefix, connection]
    # Returns the rooms the connection was removed from
    # Builds room keys from ARGV[1]; not supported on Redis Cluster
    LUA_LEAVE = """
    local rooms = redis.call('SMEMBERS', KEYS[1])
    for _, room in ipairs(rooms) do
        redis.call('SREM', ARGV[1] .. room, ARGV[2])
    end
    redis.call('DEL', KEYS[1])
    return rooms
    """

    # Keys: [connection_key]
    # Args: [room_key_prefix, ttl_seconds]
    # Returns the rooms whose TTL was refreshed
    LUA_TOUCH = """
    local rooms = redis.call('SMEMBERS', KEYS[1])
    for _, room in ipairs(rooms) do
        redis.call('EXPIRE', ARGV[1] .. room, ARGV[2])
    end
    if #rooms > 0 then
        redis.call('EXPIRE', KEYS[1], ARGV[2])
    end
    return rooms
    """

    # Keys: [room_key]
    # Args: [connection_key_prefix, room]
    # Returns live members; members whose connection entry no longer lists
    # the room (expired or rebuilt) are removed
    LUA_CONNECTIONS = """
    local live = {}
    for _, connection in ipairs(redis.call('SMEMBERS', KEYS[1])) do
        if redis.call('SISMEMBER', ARGV[1] .. connection, ARGV[2]) == 1 then
            table.insert(live, connection)
        else
            redis.call('SREM', KEYS[1], connection)
        end
    end
    return live
    """

    def __init__(self, alias: str = "default", ttl_seconds: int = ROOM_CONFIG.ROOM_TTL_SECONDS):
        from django_redis import get_redis_connection

        self._client = get_redis_connection(alias)
        self._ttl_seconds = ttl_seconds
        self._lua_join = self._client.register_script(self.LUA_JOIN)
        self._lua_leave_room = self._client.register_script(self.LUA_LEAVE_ROOM)
        self._lua_leave = self._client.register_script(self.LUA_LEAVE)
        self._lua_touch = self._client.register_script(self.LUA_TOUCH)
        self._lua_connections = self._client.register_script(self.LUA_CONNECTIONS)

    @staticmethod
    def _room_key(room: str) -> str:
        return f"{ROOM_CONFIG.KEY_PREFIX_ROOM}:{room}"

    @staticmethod
    def _connection_key(connection: str) -> str:
        return f"{ROOM_CONFIG.KEY_PREFIX_CONNECTION}:{connection}"

    @staticmethod
    def _decode(values) -> frozenset[str]:
        return frozenset(v.decode() if isinstance(v, bytes) else v for v in values)

    def join(self, room: str, connection: str) -> None:
        self._lua_join(
            keys=[self._room_key(room), self._connection_key(connection)],
            args=[room, connection, self._ttl_seconds],
        )

    def leave_room(self, room: str, connection: str) -> None:
        self._lua_leave_room(
            keys=[self._room_key(room), self._connection_key(connection)],
            args=[room, connection],
        )

    def leave(self, connection: str) -> frozenset[str]:
        rooms = self._lua_leave(
            keys=[self._connection_key(connection)],
            args=[f"{ROOM_CONFIG.KEY_PREFIX_ROOM}:", connection],
        )
        return self._decode(rooms or ())

    def touch(self, connection: str) -> frozenset[str]:
        rooms = self._lua_touch(
            keys=[self._connection_key(connection)],
            args=[f"{ROOM_CONFIG.KEY_PREFIX_ROOM}:", self._ttl_seconds],
        )
        return self._decode(rooms or ())

    def connections_for(self, room: str) -> frozenset[str]:
        members = self._lua_connections(
            keys=[self._room_key(room)],
            args=[f"{ROOM_CONFIG.KEY_PREFIX_CONNECTION}:", room],
        )
        return self._decode(members or ())

    def rooms_for(self, connection: str) -> frozenset[str]:
        return self._decode(self._client.smembers(self._connection_key(connection)))


# =============================================================================
# Registry
# =============================================================================


class RoomRegistry:
    """
    Facade over a room backend.

    Methods:
        join: Register a connection in a room
        leave_room: Remove a connection from one room
        leave: Remove a connection from every room (disconnect)
        touch: Keep a live connection's entries from expiring
        connections_for: Live connections in a room, empty when offline
        rooms_for: Rooms a connection is registered in
    """

    BACKENDS = {
        "memory": InMemoryRoomBackend,
        "redis": RedisRoomBackend,
    }

    def __init__(self, backend):
        self.backend = backend

    @classmethod
    def from_settings(cls) -> RoomRegistry:
        """Build a registry using settings.MESSAGING["ROOM_BACKEND"]."""
        config = getattr(settings, "MESSAGING", {})
        name = config.get("ROOM_BACKEND", "memory")
        if name not in cls.BACKENDS:
            raise ImproperlyConfigured(
                f"Unknown MESSAGING['ROOM_BACKEND'] {name!r}; "
                f"expected one of {sorted(cls.BACKENDS)}"
            )
        if name == "redis":
            backend = RedisRoomBackend(alias=config.get("REDIS_ALIAS", "default"))
        else:
            backend = InMemoryRoomBackend()
        logger.info(f"Room registry using {name} backend")
        return cls(backend)

    def join(self, room: str, connection: str) -> None:
        self.backend.join(room, connection)
        logger.debug(f"Connection {connection} joined {room}")

    def leave_room(self, room: str, connection: str) -> None:
        self.backend.leave_room(room, connection)
        logger.debug(f"Connection {connection} left {room}")

    def leave(self, connection: str) -> frozenset[str]:
        """
        Remove a connection from all rooms.

        Idempotent: a second call returns an empty set.
        """
        rooms = self.backend.leave(connection)
        if rooms:
            logger.debug(f"Connection {connection} left {len(rooms)} room(s)")
        return rooms

    def touch(self, connection: str) -> frozenset[str]:
        """Refresh the expiry of a connection's entries; returns its rooms."""
        return self.backend.touch(connection)

    def connections_for(self, room: str) -> frozenset[str]:
        return self.backend.connections_for(room)

    def rooms_for(self, connection: str) -> frozenset[str]:
        return self.backend.rooms_for(connection)
