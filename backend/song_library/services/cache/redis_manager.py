"""
Redis Connection Manager
========================
Owns the pooled redis.asyncio connection used by the listing cache.

Redis is optional: outside production a failed connect leaves the manager
disconnected and listings are served straight from storage.
"""

from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from song_library.core.config import Settings, settings as app_settings
from song_library.core.logging_config import get_logger


logger = get_logger(__name__)


class RedisManager:

    def __init__(self, settings: Settings = app_settings):
        self.settings = settings
        self.client: Optional[Redis] = None
        self._pool: Optional[redis.ConnectionPool] = None

    @property
    def connected(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        """
        Open the pool and ping once.

        Raises:
            RedisError: Connection failed and ENVIRONMENT is production
        """
        if not self.settings.REDIS_ENABLE:
            logger.info("Redis is disabled in configuration")
            return

        # Never log the password part of the URL
        logger.info(f"Connecting to Redis at {self.settings.REDIS_URL.split('@')[-1]}")
        self._pool = redis.ConnectionPool.from_url(
            self.settings.redis_connection_url,
            max_connections=self.settings.REDIS_MAX_CONNECTIONS,
            decode_responses=self.settings.REDIS_DECODE_RESPONSES,
        )
        client = redis.Redis(connection_pool=self._pool)

        try:
            await client.ping()
        except RedisError as e:
            logger.error(f"❌ Redis unreachable: {e}")
            await self._pool.disconnect()
            self._pool = None
            if self.settings.is_production:
                raise
            logger.warning("Continuing without listing cache")
            return

        self.client = client
        logger.info("✅ Connected to Redis")

    async def disconnect(self) -> None:
        if self.client is None:
            return
        await self.client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self.client = None
        self._pool = None
        logger.info("Redis connection closed")

    async def health_check(self) -> bool:
        if self.client is None:
            return False
        try:
            return await self.client.ping() is True
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_client(self) -> Redis:
        """
        Raises:
            RuntimeError: connect() has not succeeded
        """
        if self.client is None:
            raise RuntimeError("Redis not connected")
        return self.client


redis_manager = RedisManager()
