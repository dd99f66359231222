from __future__ import annotations

from functools import lru_cache

import redis.asyncio as redis

from insightflow.core.config import settings


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """Get a cached Redis client instance; connections are opened lazily."""
    return redis.from_url(str(settings.redis_url), decode_responses=True)
