"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _int_list_env(name: str) -> frozenset[int]:
    raw = os.getenv(name, "")
    ids: set[int] = set()
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if chunk.isdigit():
            ids.add(int(chunk))
    return frozenset(ids)


# Unread notifications with the same (type, actor, post) inside this window are suppressed.
NOTIFICATION_DEDUP_WINDOW_SECONDS: int = _int_env("NOTIFICATION_DEDUP_WINDOW_SECONDS", 60 * 60)

# Default and maximum page sizes for GET /notifications.
NOTIFICATION_PAGE_SIZE: int = _int_env("NOTIFICATION_PAGE_SIZE", 50)
NOTIFICATION_PAGE_SIZE_MAX: int = _int_env("NOTIFICATION_PAGE_SIZE_MAX", 200)

# Websocket heartbeat: the server pings every interval and drops a connection
# that stays silent for interval + timeout.
HEARTBEAT_INTERVAL_SECONDS: int = _int_env("HEARTBEAT_INTERVAL_SECONDS", 25)
HEARTBEAT_TIMEOUT_SECONDS: int = _int_env("HEARTBEAT_TIMEOUT_SECONDS", 60)

MAX_WEBSOCKET_CONNECTIONS: int = _int_env("MAX_WEBSOCKET_CONNECTIONS", 15000)

# Events waiting in a single connection's outbound queue before new ones are dropped.
OUTBOX_MAX_PENDING: int = _int_env("OUTBOX_MAX_PENDING", 256)

# Users allowed to subscribe to the "dashboard" room that mirrors every notification.
DASHBOARD_USER_IDS: frozenset[int] = _int_list_env("DASHBOARD_USER_IDS")

# Redis TTL for cached unread counters (seconds).
UNREAD_COUNT_TTL_SECONDS: int = _int_env("UNREAD_COUNT_TTL_SECONDS", 7 * 24 * 60 * 60)
