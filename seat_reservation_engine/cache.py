"""
Redis caching layer for read-mostly inventory data.

The cache is never consulted for hold or booking state. Every operation is a
no-op when Redis is unavailable so the engine keeps working without it.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import get_settings

logger = logging.getLogger(__name__)


class CacheKeyBuilder:
    """Helper class for building consistent cache keys."""

    @staticmethod
    def seat_map(show_id: str) -> str:
        """Build cache key for a show's seat inventory."""
        return f"seats:map:{show_id}"

    @staticmethod
    def seat_detail(seat_id: str) -> str:
        """Build cache key for a single seat."""
        return f"seats:detail:{seat_id}"


class CacheTTL:
    """Cache TTL constants (seconds)."""

    SEAT_MAP = 300
    SEAT_DETAIL = 300


class RedisCache:
    """Redis cache manager with connection handling and operations."""

    def __init__(self):
        self.client: Optional[Redis] = None
        self.pool: Optional[redis.ConnectionPool] = None

    @property
    def is_available(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """
        Initialize Redis connection pool and client.

        A failed connection leaves the cache disabled rather than failing startup.
        """
        settings = get_settings()

        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )
            client = Redis(connection_pool=self.pool)
            await client.ping()
            self.client = client
            logger.info("Redis cache initialized successfully")

        except (RedisError, OSError) as e:
            logger.warning("Redis unavailable, inventory caching disabled: %s", e)
            if self.pool:
                await self.pool.disconnect()
            self.pool = None
            self.client = None

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        self.client = None
        self.pool = None
        logger.info("Redis cache connections closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.client:
            return None

        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value.decode("utf-8"))
            return None
        except (RedisError, ValueError) as e:
            logger.warning("Failed to get cache key %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serialisable value to cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            return False

        try:
            serialized_value = json.dumps(value, default=str)
            if ttl:
                await self.client.setex(key, ttl, serialized_value)
            else:
                await self.client.set(key, serialized_value)
            return True
        except (RedisError, TypeError) as e:
            logger.warning("Failed to set cache key %s: %s", key, e)
            return False

    async def delete(self, *keys: str) -> bool:
        """Delete keys from cache."""
        if not self.client or not keys:
            return False

        try:
            await self.client.delete(*keys)
            return True
        except RedisError as e:
            logger.warning("Failed to delete cache keys %s: %s", keys, e)
            return False

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False


# Global cache instance
cache = RedisCache()


async def init_cache() -> None:
    """Initialize the global cache instance."""
    await cache.initialize()


async def close_cache() -> None:
    """Close the global cache instance."""
    await cache.close()


def get_cache() -> RedisCache:
    """Get the global cache instance."""
    return cache


class CacheInvalidator:
    """Helper class for cache invalidation strategies."""

    @staticmethod
    async def invalidate_seat_caches(show_id: str, *seat_ids: str) -> None:
        """Invalidate inventory caches for a show and, optionally, specific seats."""
        keys = [CacheKeyBuilder.seat_map(str(show_id))]
        keys.extend(CacheKeyBuilder.seat_detail(str(seat_id)) for seat_id in seat_ids)
        if await cache.delete(*keys):
            logger.debug(f"Invalidated seat caches for show {show_id}")
