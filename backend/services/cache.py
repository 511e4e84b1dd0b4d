"""
Redis Cache Service

Best-effort JSON cache for employee rosters. A Redis outage never fails a
report: reads miss and writes are dropped.
"""

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from backend.config import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "brink"

_redis: aioredis.Redis | None = None


def _connection() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _redis


async def close_redis() -> None:
    """Release the shared pool. Safe to call when it was never opened."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def get_cached(key: str) -> Any | None:
    """Decoded value for key, or None on a miss, an error or a disabled cache."""
    if not get_settings().cache_enabled:
        return None
    try:
        raw = await _connection().get(key)
    except (RedisError, OSError) as e:
        logger.debug(f"Cache read failed for {key}: {e}")
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning(f"Discarding unreadable cache entry {key}")
        return None


async def set_cached(key: str, value: Any, ttl: int | None = None) -> bool:
    """
    Store value as JSON under key.

    ttl defaults to EMPLOYEE_CACHE_TTL_SECONDS. Returns False when the
    write was skipped or failed.
    """
    settings = get_settings()
    if not settings.cache_enabled:
        return False
    try:
        payload = json.dumps(value, default=str)
    except TypeError as e:
        logger.warning(f"Value for {key} is not JSON serializable: {e}")
        return False
    try:
        await _connection().set(key, payload, ex=ttl or settings.employee_cache_ttl_seconds)
    except (RedisError, OSError) as e:
        logger.debug(f"Cache write failed for {key}: {e}")
        return False
    return True


async def ping() -> bool:
    try:
        return bool(await _connection().ping())
    except (RedisError, OSError) as e:
        logger.debug(f"Redis ping failed: {e}")
        return False


def employee_roster_key(location_id: str) -> str:
    """Cache key for a location's employee roster."""
    return f"{KEY_PREFIX}:employees:{location_id}"
