"""
Redis caching for public event listings.

CACHING STRATEGY
================

What we cache:
  - Anonymous GET /events responses (JSON-serialized pages)
  - Key: "events:list:" + the normalized query parameters

Why only anonymous:
  - Authenticated listings depend on who asks (own drafts are visible),
    so a shared cache entry would leak them across users
  - The anonymous view is the hot path (landing page, search box)

Invalidation:
  - Any event create/update/delete and any register/unregister deletes
    every "events:list:*" key (registration_count is part of the payload)
  - TTL expiry as safety net

Failure mode:
  - Redis errors are logged and treated as a miss; the database stays
    authoritative and the API keeps working without a cache
"""

import json
from typing import Optional

import redis.asyncio as redis

from eventhub.core.config import get_settings
from eventhub.core.logging import get_logger
from eventhub.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or unreachable."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            await client.ping()
            _redis_client = client
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            return None

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_event_list_key(query_key: str) -> str:
    return f"{LIST_PREFIX}{query_key}"


async def get_cached_events(query_key: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = make_event_list_key(query_key)
    try:
        data = await client.get(key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    return json.loads(data) if data else None


async def set_cached_events(query_key: str, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = make_event_list_key(query_key)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Drop every cached listing page."""
    client = await get_redis()
    if not client:
        return

    try:
        keys = [key async for key in client.scan_iter(match=f"{LIST_PREFIX}*", count=100)]
        if keys:
            await client.delete(*keys)
        logger.debug("cache_invalidated", keys_deleted=len(keys))
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    client = await get_redis()
    if not client:
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
    except Exception as e:
        return {"status": "error", "error": str(e)}
