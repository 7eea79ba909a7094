"""
Redis cache management.
Provides connection pooling and the presence helpers used by the real-time layer.
"""
import logging
from typing import Optional, Iterable, Set

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis cache manager with connection pooling."""

    def __init__(self):
        """Initialize Redis connection pool."""
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if not settings.redis_url:
            logger.info("No Redis URL provided - running without Redis cache")
            self.redis = None
            return

        try:
            self.redis = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password if settings.redis_password else None,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
            # Test the connection
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except (RedisError, OSError) as e:
            logger.warning("Could not connect to Redis (%s); presence is disabled", e)
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set value in cache with optional TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        if not self.redis:
            return False

        if ttl:
            return bool(await self.redis.setex(key, ttl, value))
        return bool(await self.redis.set(key, value))

    async def delete(self, key: str) -> bool:
        if not self.redis:
            return False

        return bool(await self.redis.delete(key))

    async def exists(self, key: str) -> bool:
        if not self.redis:
            return False

        return bool(await self.redis.exists(key))


# Global cache instance
cache = RedisCache()


def presence_key(user_id: str) -> str:
    return f"user:online:{user_id}"


async def mark_user_online(user_id: str) -> bool:
    """Set (or refresh) the presence key. It expires unless heartbeats keep it alive."""
    return await cache.set(presence_key(user_id), "1", ttl=settings.presence_ttl)


async def mark_user_offline(user_id: str) -> bool:
    return await cache.delete(presence_key(user_id))


async def is_user_online(user_id: str) -> bool:
    return await cache.exists(presence_key(user_id))


async def get_online_user_ids(user_ids: Iterable[str]) -> Set[str]:
    """Subset of user_ids with a live presence key (one round trip)."""
    ids = list(dict.fromkeys(user_ids))
    if not ids or not cache.redis:
        return set()

    values = await cache.redis.mget([presence_key(user_id) for user_id in ids])
    return {user_id for user_id, value in zip(ids, values) if value is not None}
