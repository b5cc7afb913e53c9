"""
Cache Key Management
====================
Utilities for generating and managing cache keys.
"""

from typing import Any, Optional
import hashlib


class CacheKeys:
    """
    Cache key generator with consistent naming

    Pattern: {version}:{prefix}:{resource}:{identifier}
    """

    # Cache version (increment to invalidate all caches)
    VERSION = "v1"

    PREFIX_LISTING = "listing"

    @classmethod
    def _make_key(cls, *parts: Any, version: Optional[str] = None) -> str:
        version = version or cls.VERSION
        key_parts = [str(p) for p in parts if p is not None]
        return ":".join([version] + key_parts)

    @classmethod
    def _hash(cls, value: str) -> str:
        """Short stable hash for use inside a key"""
        return hashlib.md5(value.encode()).hexdigest()[:8]

    # ========================================================================
    # LISTING CACHE KEYS
    # ========================================================================

    @classmethod
    def listing(cls, backend: str, bucket: str, prefix: Optional[str] = None) -> str:
        """Cache key for one bucket listing, optionally under a prefix"""
        return cls._make_key(
            cls.PREFIX_LISTING, backend, bucket, cls._hash(prefix or "")
        )

    @classmethod
    def listing_pattern(cls, backend: str, bucket: str) -> str:
        """Pattern matching every listing of a bucket"""
        return cls._make_key(cls.PREFIX_LISTING, backend, bucket, "*")


# Singleton instance
cache_keys = CacheKeys()
