"""
Redis helper utilities for the session layer.

`assistant.deps.get_redis` exposes the shared client as a FastAPI
dependency; this module owns its construction plus the small JSON
helpers the transcript store is built on.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from redis.asyncio import Redis

from .settings import settings

_redis_client: Optional[Redis] = None


def get_redis_client() -> Redis:
    """
    Return a lazily-created global Redis client.

    Sync so it can be called from FastAPI dependencies and the app
    lifespan alike; the driver itself is async.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def redis_get_json(redis: Redis, key: str) -> Optional[Any]:
    """
    Load a JSON value from Redis.

    Returns None when the key is missing; malformed payloads raise
    json.JSONDecodeError so callers can tell the two cases apart.
    """
    raw = await redis.get(key)
    if raw is None:
        return None
    return json.loads(raw)


async def redis_set_json(
    redis: Redis, key: str, value: Any, *, ttl_seconds: int | None = None
) -> None:
    """
    Store a JSON-serialisable value under the given key with optional TTL.
    """
    data = json.dumps(value, ensure_ascii=False)
    if ttl_seconds is not None:
        await redis.set(key, data, ex=ttl_seconds)
    else:
        await redis.set(key, data)


__all__ = ["close_redis_client", "get_redis_client", "redis_get_json", "redis_set_json"]
