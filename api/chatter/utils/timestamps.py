"""Timestamp helpers.

All persisted timestamps are naive UTC so that PostgreSQL and SQLite compare them the same way.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_cursor(raw: str) -> datetime:
    """Parse an ISO timestamp cursor into naive UTC. Raises ValueError when malformed."""
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
