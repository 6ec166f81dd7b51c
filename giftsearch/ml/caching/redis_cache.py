"""
Redis Cache Client
Async Redis client with connection pooling.
"""

import logging
import pickle
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config import MLConfig, get_ml_config
from .base import CacheBackend

logger = logging.getLogger(__name__)


class RedisCache(CacheBackend):
    """
    Redis cache client with connection pooling.

    Values are pickled. Redis errors are logged and reported as a miss
    (get) or a failed write (set), never raised to the caller.
    """

    def __init__(self, config: Optional[MLConfig] = None, client: Optional[redis.Redis] = None):
        """
        Initialize Redis cache client.

        Args:
            config: Configuration
            client: Pre-built redis.asyncio client (built from a pool if not provided)
        """
        self.config = config or get_ml_config()
        storage = self.config.storage

        if client is None:
            # Binary values (pickled embeddings)
            self.pool = redis.ConnectionPool(
                host=storage.redis_host,
                port=storage.redis_port,
                db=storage.redis_db,
                password=storage.redis_password,
                decode_responses=False,
                max_connections=storage.redis_max_connections,
                socket_timeout=storage.redis_socket_timeout,
                socket_connect_timeout=storage.redis_socket_timeout,
            )
            client = redis.Redis(connection_pool=self.pool)
        else:
            self.pool = None

        self.client = client

        logger.info(
            f"Redis cache initialized: {storage.redis_host}:{storage.redis_port} "
            f"(db={storage.redis_db})"
        )

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        try:
            data = await self.client.get(key)
        except RedisError as e:
            logger.error(f"Redis GET error for key '{key}': {e}")
            return None

        if data is None:
            return None

        try:
            return pickle.loads(data)
        except Exception as e:
            logger.error(f"Error deserializing cached data for key '{key}': {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (will be pickled)
            ttl: Time-to-live in seconds (None = no expiration)

        Returns:
            True if successful, False otherwise
        """
        try:
            data = pickle.dumps(value)
        except Exception as e:
            logger.error(f"Error serializing data for key '{key}': {e}")
            return False

        try:
            if ttl is not None:
                await self.client.setex(key, ttl, data)
            else:
                await self.client.set(key, data)
            return True

        except RedisError as e:
            logger.error(f"Redis SET error for key '{key}': {e}")
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if key was deleted, False otherwise
        """
        try:
            result = await self.client.delete(key)
            return result > 0

        except RedisError as e:
            logger.error(f"Redis DELETE error for key '{key}': {e}")
            return False

    async def ping(self) -> bool:
        """
        Test Redis connection.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.error(f"Redis PING error: {e}")
            return False

    async def close(self) -> None:
        """Release pooled connections."""
        await self.client.aclose()
        if self.pool is not None:
            await self.pool.disconnect()
