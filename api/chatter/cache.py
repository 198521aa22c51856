"""Redis cache utility functions."""

from __future__ import annotations

import logging
import os

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None
_redis_disabled = False


def get_redis() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None when REDIS_URL is not configured or the server is unreachable;
    callers fall back to the database.
    """
    global _redis_client, _redis_disabled

    if _redis_client is not None:
        return _redis_client

    if _redis_disabled:
        return None

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        _redis_disabled = True
        logger.info("REDIS_URL not set, unread counters are served from the database")
        return None

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        # Test connection
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get_int(key: str) -> int | None:
    """Read an integer counter, None on a miss or when Redis is unavailable."""
    client = get_redis()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
    except Exception as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set_int(key: str, value: int, ttl: int = 300) -> bool:
    """
    Set an integer counter with TTL.

    Returns:
        True if successful, False otherwise
    """
    client = get_redis()
    if not client:
        return False

    try:
        client.setex(key, ttl, int(value))
        return True
    except Exception as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_delete(key: str) -> bool:
    """
    Delete a specific cache key.

    Returns:
        True if deleted, False otherwise
    """
    client = get_redis()
    if not client:
        return False

    try:
        return bool(client.delete(key))
    except Exception as e:
        logger.warning(f"Cache delete error for key '{key}': {e}")
        return False
