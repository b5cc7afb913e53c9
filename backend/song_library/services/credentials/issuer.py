"""
Temporary-Access Credential Issuer
==================================
Obtains and caches the storage backend's bearer credential, and mints
time-bounded access URLs for single objects.

States:
    unauthenticated --ensure_credential()--> authenticated
    authenticated   --expiry or rejected token--> unauthenticated

Refresh is lazy (on next use); there is no background timer.
"""

from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from song_library.core.exceptions import CredentialRejected, InvalidRequest, SongLibraryError
from song_library.core.logging_config import get_logger
from song_library.models.song import SignedURL
from song_library.services.credentials.cache import Credential, CredentialCache
from song_library.services.library.taxonomy import normalize_key

if TYPE_CHECKING:
    from song_library.services.storage.base import StorageBackend


logger = get_logger(__name__)

T = TypeVar("T")


class CredentialIssuer:
    """
    Credential Issuer

    Owns the shared credential cache for one storage backend.
    """

    def __init__(
        self,
        backend: "StorageBackend",
        cache: Optional[CredentialCache] = None,
        credential_ttl_seconds: int = 23 * 60 * 60,
        max_url_ttl_seconds: int = 7 * 24 * 60 * 60,
    ):
        self.backend = backend
        self.cache = cache or CredentialCache()
        self.credential_ttl_seconds = credential_ttl_seconds
        self.max_url_ttl_seconds = max_url_ttl_seconds
        self.last_error: Optional[str] = None

    @property
    def state(self) -> str:
        return self.cache.state

    async def ensure_credential(self) -> Credential:
        """
        Return a valid credential, authorizing against the backend if the
        cache is empty or expired.

        Raises:
            AuthenticationFailed: Backend rejected the account keys
            StorageUnavailable: Backend unreachable
        """
        credential = self.cache.get()
        if credential is not None:
            return credential

        logger.info(f"Authorizing with {self.backend.name} storage backend")
        try:
            grant = await self.backend.authorize()
        except SongLibraryError as exc:
            self.last_error = exc.message
            raise
        self.last_error = None
        credential = Credential.issue(
            token=grant.token,
            api_url=grant.api_url,
            download_url=grant.download_url,
            ttl_seconds=grant.ttl_seconds or self.credential_ttl_seconds,
            now=self.cache.now(),
            account_id=grant.account_id,
        )
        self.cache.put(credential)
        logger.info(f"Storage credential cached until {credential.expires_at.isoformat()}")
        return credential

    def invalidate(self) -> None:
        self.cache.clear()

    async def run(self, operation: Callable[[Credential], Awaitable[T]]) -> T:
        """
        Run ``operation`` with the current credential.

        A rejected token is discarded and the operation retried once with a
        fresh one.
        """
        credential = await self.ensure_credential()
        try:
            return await operation(credential)
        except CredentialRejected:
            logger.warning(f"{self.backend.name} rejected cached credential, re-authorizing")
            self.invalidate()
            credential = await self.ensure_credential()
            return await operation(credential)

    async def issue_access_url(
        self,
        key: str,
        ttl_seconds: int,
        content_disposition: Optional[str] = None,
    ) -> SignedURL:
        """
        Mint a time-bounded URL for one object.

        Args:
            key: Object key
            ttl_seconds: URL lifetime
            content_disposition: Optional Content-Disposition for the download

        Returns:
            SignedURL: URL plus ``expiresAt`` in epoch milliseconds

        Raises:
            InvalidRequest: Empty key or TTL out of range
            ObjectNotFound: Backend reports the key does not exist
            AccessDenied: Backend refuses the authorization scope
        """
        key = normalize_key(key or "")
        if not key:
            raise InvalidRequest("Object key is required")
        if ttl_seconds < 1 or ttl_seconds > self.max_url_ttl_seconds:
            raise InvalidRequest(
                "ttl out of range",
                details={"min": 1, "max": self.max_url_ttl_seconds},
            )

        issued_at = self.cache.now()
        url = await self.run(
            lambda credential: self.backend.sign_url(
                credential, key, ttl_seconds, content_disposition
            )
        )
        expires_at_ms = int(issued_at.timestamp() * 1000) + ttl_seconds * 1000

        logger.debug(f"Issued access URL for {key} (ttl {ttl_seconds}s)")
        return SignedURL(key=key, url=url, expires_at=expires_at_ms)
