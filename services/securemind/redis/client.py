"""Async Redis client lifecycle.

A single connection pool is created at startup and shared by the session
store. Call sites fetch it with get_redis_client().
"""

import redis.asyncio as aioredis

from securemind.config import settings
from securemind.logging_config import get_logger

logger = get_logger(__name__)

_client: aioredis.Redis | None = None


async def init_redis() -> None:
    """Create the Redis connection pool and verify connectivity."""
    global _client
    _client = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    await _client.ping()
    logger.info("Redis connection established")


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _client
    if _client is not None:
        logger.info("Closing Redis connection pool")
        await _client.aclose()
        _client = None


def get_redis_client() -> aioredis.Redis:
    """Return the shared Redis client, creating it lazily outside the app lifespan."""
    global _client
    if _client is None:
        _client = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    return _client


async def get_redis_health() -> bool:
    """Check Redis health for the readiness check."""
    try:
        return bool(await get_redis_client().ping())
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return False
