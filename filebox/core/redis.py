import redis.asyncio as redis
from typing import Optional
import logging

from filebox.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        self.redis = await redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def ping(self) -> bool:
        """Check the Redis connection"""
        if not self.redis:
            return False
        return await self.redis.ping()

    async def incr_with_expiry(self, key: str, expire: int) -> Optional[int]:
        """Increment a counter and (re)arm its TTL in one round trip.

        Returns None when Redis is not connected.
        """
        if not self.redis:
            return None
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, expire)
            count, _ = await pipe.execute()
        return int(count)


# Global Redis client instance
redis_client = RedisClient()
