"""
Redis caching for event reads.

CACHING STRATEGY: invalidate-only
=================================

What we cache:
  - Single events:         "event:{id}"
  - The unfiltered list:   "events:list"

Who writes the cache:
  - Only the read path, on a miss, with a TTL (1 hour by default).
  - Mutations never write cached values. After commit they delete
    "event:{id}" and "events:list"; the next read repopulates from the
    database. The cache therefore can hold old data but never data that
    was computed by a writer and disagrees with the database.

Failure policy:
  - Errors while deleting are logged and swallowed: a committed reservation
    must not be reported as failed because Redis is down.
  - Errors while reading behave like a miss: fall back to the database.
  - A process crash between commit and delete leaves a stale entry for at
    most one TTL. That window is accepted.
"""

import json
import uuid
from typing import Any, Optional

from redis.exceptions import RedisError

from reservation_engine.core.config import get_settings
from reservation_engine.core.logging import get_logger
from reservation_engine.core.metrics import record_cache_error, record_cache_operation
from reservation_engine.infrastructure import redis_client

logger = get_logger(__name__)

EVENT_CACHE_PREFIX = "event:"
EVENT_LIST_CACHE_KEY = "events:list"

# Anything the client can raise short of a programming error.
CACHE_ERRORS = (RedisError, OSError, ValueError)


def event_key(event_id: uuid.UUID | str) -> str:
    return f"{EVENT_CACHE_PREFIX}{event_id}"


async def _get(key: str, operation: str) -> Optional[Any]:
    client = await redis_client.get_redis()
    if client is None:
        return None

    try:
        data = await client.get(key)
    except CACHE_ERRORS as e:
        record_cache_error(operation)
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data is None:
        record_cache_operation(operation, hit=False)
        logger.debug("cache_miss", key=key)
        return None

    try:
        value = json.loads(data)
    except ValueError as e:
        record_cache_error(operation)
        logger.error("cache_decode_error", key=key, error=str(e))
        return None

    record_cache_operation(operation, hit=True)
    logger.debug("cache_hit", key=key)
    return value


async def _set(key: str, value: Any, operation: str) -> None:
    client = await redis_client.get_redis()
    if client is None:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(value, default=str))
        logger.debug("cache_set", key=key, ttl=ttl)
    except CACHE_ERRORS as e:
        record_cache_error(operation)
        logger.error("cache_set_error", key=key, error=str(e))


async def get_cached_event(event_id: uuid.UUID) -> Optional[dict]:
    return await _get(event_key(event_id), "get_event")


async def set_cached_event(event_id: uuid.UUID, data: dict) -> None:
    """Populate a single event entry. Read path only."""
    await _set(event_key(event_id), data, "set_event")


async def get_cached_event_list() -> Optional[list]:
    return await _get(EVENT_LIST_CACHE_KEY, "get_event_list")


async def set_cached_event_list(data: list) -> None:
    """Populate the unfiltered event list. Read path only."""
    await _set(EVENT_LIST_CACHE_KEY, data, "set_event_list")


async def invalidate_event(event_id: Optional[uuid.UUID] = None) -> None:
    """
    Evict the per-event entry (when given) and the aggregate list.
    Call after the mutating transaction has committed. Never raises.
    """
    client = await redis_client.get_redis()
    if client is None:
        return

    keys = [EVENT_LIST_CACHE_KEY]
    if event_id is not None:
        keys.insert(0, event_key(event_id))

    try:
        deleted = await client.delete(*keys)
        logger.info("cache_invalidated", keys=keys, keys_deleted=deleted)
    except CACHE_ERRORS as e:
        record_cache_error("invalidate")
        logger.error("cache_invalidation_error", keys=keys, error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await redis_client.get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except CACHE_ERRORS as e:
        return {"status": "error", "error": str(e)}
