"""
Redis async connection pool.

Redis is only the notification sink: ride events are published on
``settings.notification_channel`` for push / SMS relays to deliver.
"""

import redis.asyncio as aioredis

from greenride.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    await _pool.disconnect()
