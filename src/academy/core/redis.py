"""
Redis Configuration

Shared async Redis client. Redis is optional: it only backs rate limiting,
which falls back to process memory when Redis is down.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from academy.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis | None:
    """
    Initialize the Redis connection. Call this on application startup.

    Returns:
        The client, or None if Redis could not be reached
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Redis unavailable at startup, continuing without it: {e}")
        await client.aclose()
        redis_client = None
        return None

    redis_client = client
    logger.info("Redis connected")
    return redis_client


def get_redis() -> Redis | None:
    """Return the shared client, or None if Redis is not available."""
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
