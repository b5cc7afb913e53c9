"""
Cache Services
==============
Redis connection, client wrapper, and the bucket listing cache.
"""

from song_library.services.cache.redis_manager import redis_manager
from song_library.services.cache.redis_client import redis_client, RedisClient
from song_library.services.cache.keys import cache_keys
from song_library.services.cache.listing import ListingCache


__all__ = [
    "redis_manager",
    "redis_client",
    "RedisClient",
    "cache_keys",
    "ListingCache",
]
