"""
Redis Client Wrapper
====================
JSON get/set/invalidate over the shared Redis connection.

The listing cache is an optimization only: every Redis failure is logged and
reported as a miss (or False/0), never raised into a request.
"""

import json
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from song_library.core.config import settings
from song_library.core.logging_config import get_logger
from song_library.services.cache.redis_manager import RedisManager, redis_manager


logger = get_logger(__name__)


class RedisClient:

    def __init__(self, manager: RedisManager, enabled: Optional[bool] = None):
        self._manager = manager
        self._enabled = settings.REDIS_ENABLE if enabled is None else enabled

    def _connection(self) -> Optional[Redis]:
        if not self._enabled:
            return None
        try:
            return self._manager.get_client()
        except RuntimeError:
            logger.warning("Redis enabled but not connected; skipping cache")
            return None

    async def get(self, key: str) -> Optional[Any]:
        """Decoded JSON value, or None on miss, bad JSON or Redis error"""
        redis = self._connection()
        if redis is None:
            return None

        try:
            raw = await redis.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            return None

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-JSON cache entry: {key}")
            return None

        logger.debug(f"Cache hit: {key}")
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        redis = self._connection()
        if redis is None:
            return False

        payload = json.dumps(value, default=str)
        try:
            if ttl:
                await redis.setex(key, ttl, payload)
            else:
                await redis.set(key, payload)
        except RedisError as e:
            logger.error(f"Redis SET failed for {key}: {e}")
            return False

        logger.debug(f"Cache set: {key} (ttl={ttl})")
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching ``pattern`` (SCAN, not KEYS).

        Returns:
            int: Number of keys deleted
        """
        redis = self._connection()
        if redis is None:
            return 0

        try:
            keys = [key async for key in redis.scan_iter(match=pattern)]
            if not keys:
                return 0
            deleted = await redis.delete(*keys)
        except RedisError as e:
            logger.error(f"Redis invalidation failed for {pattern}: {e}")
            return 0

        logger.info(f"Invalidated {deleted} cached listings ({pattern})")
        return deleted


redis_client = RedisClient(redis_manager)
