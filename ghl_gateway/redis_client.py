"""
Redis helper utilities for the Redis-backed credential store.

This module provides a central place to construct the Redis client and
some small helpers for JSON-style key access so that storage components do
not duplicate this logic.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from redis.asyncio import Redis

from .settings import settings

_redis_client: Optional[Redis] = None


def get_redis_client(url: Optional[str] = None) -> Redis:
    """
    Return a lazily-created global Redis client.

    This is intentionally sync so it can be reused both from FastAPI
    dependencies and background tasks. The underlying driver is fully
    async and should be awaited by callers.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(url or settings.redis_url, decode_responses=True)
    return _redis_client


async def redis_set_json(
    redis: Redis,
    key: str,
    value: Any,
    *,
    ttl_seconds: int | None = None,
) -> None:
    """
    Store a JSON-serialisable value under the given key with optional TTL.
    """
    data = json.dumps(value, ensure_ascii=False)
    await redis.set(key, data, ex=ttl_seconds)


async def redis_delete(redis: Redis, key: str) -> bool:
    """
    Delete a key; returns True if it existed.
    """
    return bool(await redis.delete(key))


__all__ = ["get_redis_client", "redis_set_json", "redis_delete"]
