"""
Listing Cache
=============
Short-lived cache of bucket listings, so folder/song/search requests do not
each enumerate the whole bucket. Only object metadata is cached, never
credentials or signed URLs.
"""

from typing import List, Optional

from pydantic import ValidationError

from song_library.core.logging_config import get_logger
from song_library.models.song import StoredObject
from song_library.services.cache.keys import cache_keys
from song_library.services.cache.redis_client import RedisClient


logger = get_logger(__name__)


class ListingCache:

    def __init__(
        self,
        client: RedisClient,
        backend: str,
        bucket: str,
        ttl_seconds: int = 60,
        enabled: bool = True,
    ):
        self.client = client
        self.backend = backend
        self.bucket = bucket
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled

    async def get(self, prefix: Optional[str] = None) -> Optional[List[StoredObject]]:
        if not self.enabled:
            return None

        cached = await self.client.get(cache_keys.listing(self.backend, self.bucket, prefix))
        if not isinstance(cached, list):
            return None

        try:
            return [StoredObject.model_validate(item) for item in cached]
        except ValidationError:
            logger.warning(f"Discarding malformed cached listing (prefix={prefix!r})")
            return None

    async def put(self, objects: List[StoredObject], prefix: Optional[str] = None) -> None:
        if not self.enabled:
            return

        await self.client.set(
            cache_keys.listing(self.backend, self.bucket, prefix),
            [obj.model_dump(mode="json") for obj in objects],
            ttl=self.ttl_seconds,
        )

    async def invalidate(self) -> int:
        if not self.enabled:
            return 0
        return await self.client.delete_pattern(cache_keys.listing_pattern(self.backend, self.bucket))
