# guitarshare/db/redis.py

from typing import Optional

import redis.asyncio as aioredis

from guitarshare.config import settings
from guitarshare.utils.logger import log_info

# Module-level client (lazy init)
_client: Optional[aioredis.Redis] = None


def get_redis() -> aioredis.Redis:
    """Get or create the async Redis client backed by a connection pool."""
    global _client
    if _client is None:
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        log_info("Redis client created")
    return _client


async def close_redis() -> None:
    """Close the client and its pool. Safe to call when never opened."""
    global _client
    if _client is not None:
        log_info("Closing Redis connection pool...")
        await _client.aclose()
        _client = None
        log_info("Redis pool closed.")
