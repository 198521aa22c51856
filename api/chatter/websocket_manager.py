"""WebSocket connection manager: rooms, fan-out and presence for realtime events."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Any, Iterable

from fastapi import WebSocket

from .presence import PresenceTracker
from .settings import DASHBOARD_USER_IDS, MAX_WEBSOCKET_CONNECTIONS, OUTBOX_MAX_PENDING

logger = logging.getLogger(__name__)

DASHBOARD_ROOM = "dashboard"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def chat_room(user_a_id: int, user_b_id: int) -> str:
    """Room shared by both participants of a conversation (canonical pair order)."""
    low, high = sorted((user_a_id, user_b_id))
    return f"chat:{low}:{high}"


def post_room(post_id: int) -> str:
    return f"post:{post_id}"


def envelope(event: str, payload: Any) -> dict[str, Any]:
    return {"event": event, "data": payload}


class Connection:
    """
    One live websocket bound to an authenticated user.

    Events are queued on a bounded FIFO and written by a single writer task,
    so a connection sees events in the order they were pushed. When the queue
    is full new events are dropped.
    """

    def __init__(
        self,
        user_id: int,
        websocket: WebSocket | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        max_pending: int = OUTBOX_MAX_PENDING,
    ):
        self.connection_id = uuid.uuid4().hex
        self.user_id = user_id
        self.websocket = websocket
        self.loop = loop
        self.rooms: set[str] = set()
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0
        self.closed = False

    def enqueue(self, message: dict[str, Any]) -> None:
        """Queue ``message`` for delivery; callable from any thread."""
        if self.loop is None or self._on_own_loop():
            self._offer(message)
        else:
            # Sync route handlers run in the threadpool
            self.loop.call_soon_threadsafe(self._offer, message)

    def _on_own_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    def _offer(self, message: dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Outbox full for connection {self.connection_id} (user {self.user_id}), "
                f"dropping '{message.get('event')}' event"
            )

    async def deliver(self) -> None:
        """
        Write queued events to the websocket until the transport fails.

        A failed send marks the connection closed; the manager unregisters
        closed connections on their next push.
        """
        if self.websocket is None:
            return
        while True:
            message = await self.outbox.get()
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.warning(
                    f"Send failed on connection {self.connection_id} (user {self.user_id}): {e}"
                )
                self.closed = True
                return


class ConnectionManager:
    """Manages WebSocket connections, room membership and event fan-out."""

    def __init__(
        self,
        *,
        max_connections: int = MAX_WEBSOCKET_CONNECTIONS,
        dashboard_user_ids: Iterable[int] = DASHBOARD_USER_IDS,
    ):
        # connection_id -> Connection
        self._connections: dict[str, Connection] = {}
        # room -> set of connection_ids
        self._rooms: dict[str, set[str]] = {}
        self._lock = threading.RLock()
        self._max_connections = max_connections
        self._dashboard_user_ids = frozenset(dashboard_user_ids)
        self.presence = PresenceTracker(self._announce_presence)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(self, connection: Connection) -> bool:
        """Register ``connection`` and subscribe it to its user room. False if full."""
        with self._lock:
            if len(self._connections) >= self._max_connections:
                logger.warning(
                    f"Connection limit reached ({self._max_connections}), rejecting user {connection.user_id}"
                )
                return False
            self._connections[connection.connection_id] = connection
            self._add_member(connection, user_room(connection.user_id))

        self.presence.mark_online(connection.user_id)
        logger.info(
            f"User {connection.user_id} connected ({connection.connection_id}). "
            f"Total connections: {self.get_connection_count()}"
        )
        return True

    def disconnect(self, connection_id: str) -> None:
        """Drop a connection from every room. Unknown ids are ignored."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return
            for room in list(connection.rooms):
                self._remove_member(connection, room)

        self.presence.mark_offline(connection.user_id)
        logger.info(
            f"User {connection.user_id} disconnected ({connection_id}). "
            f"Total connections: {self.get_connection_count()}"
        )

    def reset(self) -> None:
        """Forget all connections, rooms and presence (process shutdown)."""
        with self._lock:
            self._connections.clear()
            self._rooms.clear()
        self.presence.clear()

    # =========================================================================
    # Rooms
    # =========================================================================

    def can_join(self, user_id: int, room: str) -> bool:
        """Check whether ``user_id`` may subscribe to ``room``."""
        if room == DASHBOARD_ROOM:
            return user_id in self._dashboard_user_ids

        kind, _, rest = room.partition(":")
        if kind == "user":
            return rest == str(user_id)
        if kind == "chat":
            parts = rest.split(":")
            if len(parts) != 2 or not all(p.isdigit() for p in parts):
                return False
            low, high = int(parts[0]), int(parts[1])
            return low != high and user_id in (low, high) and room == chat_room(low, high)
        if kind == "post":
            return rest.isdigit()
        return False

    def join(self, connection_id: str, room: str) -> bool:
        """Subscribe a connection to ``room``. Idempotent; False for unknown connections."""
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            self._add_member(connection, room)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        """Unsubscribe a connection from ``room``. Idempotent."""
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            self._remove_member(connection, room)
        return True

    def rooms_of(self, connection_id: str) -> set[str]:
        with self._lock:
            connection = self._connections.get(connection_id)
            return set(connection.rooms) if connection else set()

    def members(self, room: str) -> list[Connection]:
        with self._lock:
            return [self._connections[cid] for cid in self._rooms.get(room, ())]

    def _add_member(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection.connection_id)
        connection.rooms.add(room)

    def _remove_member(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection.connection_id)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    # =========================================================================
    # Delivery
    # =========================================================================

    def push(self, room: str, event: str, payload: Any) -> int:
        """
        Queue an event for every connection subscribed to ``room``.

        Fire-and-forget: the event is dropped when nobody is subscribed, and a
        failing connection does not prevent delivery to the others. Never
        raises. Returns the number of connections the event was queued for.
        """
        # Copy of members to avoid modification during iteration
        return self._fan_out(self.members(room), envelope(event, payload))

    def push_rooms(self, rooms: Iterable[str], event: str, payload: Any) -> int:
        """Like :meth:`push` over several rooms; a connection in many of them gets one copy."""
        with self._lock:
            connection_ids: set[str] = set()
            for room in rooms:
                connection_ids.update(self._rooms.get(room, ()))
            targets = [self._connections[cid] for cid in connection_ids]
        return self._fan_out(targets, envelope(event, payload))

    def push_to_user(self, user_id: int, event: str, payload: Any) -> int:
        return self.push(user_room(user_id), event, payload)

    def broadcast(self, event: str, payload: Any, *, exclude_user_id: int | None = None) -> int:
        """Queue an event for every open connection, optionally skipping one user's."""
        with self._lock:
            targets = [
                c for c in self._connections.values() if c.user_id != exclude_user_id
            ]
        return self._fan_out(targets, envelope(event, payload))

    def _fan_out(self, connections: list[Connection], message: dict[str, Any]) -> int:
        delivered = 0
        dead: list[str] = []
        for connection in connections:
            if connection.closed:
                dead.append(connection.connection_id)
                continue
            try:
                connection.enqueue(message)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Error queueing '{message['event']}' for user {connection.user_id} "
                    f"({connection.connection_id}): {e}"
                )
        for connection_id in dead:
            self.disconnect(connection_id)
        return delivered

    # =========================================================================
    # Presence
    # =========================================================================

    def is_online(self, user_id: int) -> bool:
        return self.presence.is_online(user_id)

    def get_connection_count(self) -> int:
        """Get total number of active connections."""
        with self._lock:
            return len(self._connections)

    def _announce_presence(self, event: str, user_id: int) -> None:
        self.broadcast(event, {"user_id": user_id}, exclude_user_id=user_id)


# Global connection manager instance
connection_manager = ConnectionManager()
