"""
Service Dependencies
====================
Builds the library service graph once per application and exposes it to
routes through FastAPI dependencies.
"""

from fastapi import Request

from song_library.core.config import Settings
from song_library.services.cache import ListingCache, redis_client
from song_library.services.credentials import CredentialCache, CredentialIssuer
from song_library.services.library.service import LibraryService
from song_library.services.storage import get_storage_backend


def build_library_service(settings: Settings) -> LibraryService:
    """Wire backend, credential issuer and listing cache from settings"""
    backend = get_storage_backend(settings)
    issuer = CredentialIssuer(
        backend,
        cache=CredentialCache(),
        credential_ttl_seconds=settings.CREDENTIAL_TTL_SECONDS,
        max_url_ttl_seconds=settings.MAX_STREAM_URL_TTL_SECONDS,
    )
    listing_cache = ListingCache(
        redis_client,
        backend=backend.name,
        bucket=backend.bucket_name,
        ttl_seconds=settings.LISTING_CACHE_TTL_SECONDS,
        enabled=settings.caching_enabled,
    )
    return LibraryService(backend, issuer, listing_cache, settings)


def get_library_service(request: Request) -> LibraryService:
    return request.app.state.library_service
