"""
Redis connection management for the distributed tenant cache backend
"""
from typing import Optional

import redis.asyncio as redis

from voice_receptionist.core.config import settings
from voice_receptionist.core.logging import get_logger

logger = get_logger(__name__)

# Global Redis pool
_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get Redis client with connection pooling"""
    global _redis_pool, _redis_client

    if _redis_client is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=50,
            decode_responses=True
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)
        logger.info("Redis connection pool created")

    return _redis_client


async def close_redis():
    """Close Redis connection"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.close()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
