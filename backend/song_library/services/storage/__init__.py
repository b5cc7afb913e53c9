"""
Storage Services
================
Object storage backends (Backblaze B2 native API, S3-compatible).
"""

from song_library.core.config import Settings
from song_library.core.logging_config import get_logger
from song_library.services.storage.base import AuthorizationGrant, StorageBackend
from song_library.services.storage.b2_client import B2StorageClient
from song_library.services.storage.s3_client import S3StorageClient


logger = get_logger(__name__)


def get_storage_backend(settings: Settings) -> StorageBackend:
    """
    Build the backend selected by ``STORAGE_BACKEND``

    Missing settings are not an error here; the first call that needs the
    backend fails with AuthenticationFailed instead.
    """
    if not settings.storage_configured:
        logger.warning(f"Storage backend '{settings.STORAGE_BACKEND}' is not fully configured")

    if settings.STORAGE_BACKEND == "s3":
        return S3StorageClient(
            endpoint_url=settings.S3_ENDPOINT_URL or "",
            access_key_id=settings.S3_ACCESS_KEY_ID or "",
            secret_access_key=settings.S3_SECRET_ACCESS_KEY or "",
            bucket_name=settings.S3_BUCKET_NAME or "",
            region_name=settings.S3_REGION,
            public_url=settings.S3_PUBLIC_URL,
            timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
            retries=settings.UPSTREAM_RETRIES,
            retry_backoff_seconds=settings.UPSTREAM_RETRY_BACKOFF_SECONDS,
        )

    return B2StorageClient(
        application_key_id=settings.B2_APPLICATION_KEY_ID or "",
        application_key=settings.B2_APPLICATION_KEY or "",
        bucket_id=settings.B2_BUCKET_ID or "",
        bucket_name=settings.B2_BUCKET_NAME or "",
        auth_url=settings.B2_AUTH_URL,
        timeout_seconds=settings.UPSTREAM_TIMEOUT_SECONDS,
        retries=settings.UPSTREAM_RETRIES,
        retry_backoff_seconds=settings.UPSTREAM_RETRY_BACKOFF_SECONDS,
    )


__all__ = [
    "AuthorizationGrant",
    "StorageBackend",
    "B2StorageClient",
    "S3StorageClient",
    "get_storage_backend",
]
