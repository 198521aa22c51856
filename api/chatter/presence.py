"""Per-user presence reference counting."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

USER_CONNECTED = "userConnected"
USER_DISCONNECTED = "userDisconnected"

# Callback receiving (event_name, user_id) on a presence transition.
PresenceListener = Callable[[str, int], None]


class PresenceTracker:
    """
    Tracks how many live connections each user has.

    A user is online while the count is positive. Only the 0 -> 1 and 1 -> 0
    transitions are announced, so opening or closing a second tab does not
    flap the user's presence.
    """

    def __init__(self, listener: PresenceListener | None = None):
        self._counts: dict[int, int] = {}
        self._lock = threading.Lock()
        self._listener = listener

    def mark_online(self, user_id: int) -> bool:
        """Count a new connection. Returns True when the user just came online."""
        with self._lock:
            count = self._counts.get(user_id, 0) + 1
            self._counts[user_id] = count
        if count == 1:
            logger.info(f"User {user_id} is online")
            self._announce(USER_CONNECTED, user_id)
            return True
        return False

    def mark_offline(self, user_id: int) -> bool:
        """Release a connection. Returns True when the user just went offline."""
        with self._lock:
            count = self._counts.get(user_id, 0)
            if count == 0:
                return False
            if count == 1:
                del self._counts[user_id]
            else:
                self._counts[user_id] = count - 1
        if count == 1:
            logger.info(f"User {user_id} is offline")
            self._announce(USER_DISCONNECTED, user_id)
            return True
        return False

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return self._counts.get(user_id, 0) > 0

    def connection_count(self, user_id: int) -> int:
        with self._lock:
            return self._counts.get(user_id, 0)

    def online_user_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._counts)

    def clear(self) -> None:
        """Forget everyone, without announcements (process shutdown)."""
        with self._lock:
            self._counts.clear()

    def _announce(self, event: str, user_id: int) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event, user_id)
        except Exception as e:
            logger.error(f"Presence listener failed for {event} of user {user_id}: {e}")
