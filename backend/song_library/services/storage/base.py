"""
Storage Backend Interface
=========================
The calls the library needs from an object store. Implementations translate
vendor failures into the typed errors in ``song_library.core.exceptions``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from song_library.core.exceptions import StorageUnavailable
from song_library.core.logging_config import get_logger
from song_library.models.song import StoredObject

if TYPE_CHECKING:
    from song_library.services.credentials.cache import Credential


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AuthorizationGrant:
    """Result of a backend authorization call"""
    token: str = field(repr=False)
    api_url: str
    download_url: str
    account_id: Optional[str] = None
    ttl_seconds: Optional[int] = None  # provider-declared lifetime, if any


class StorageBackend(ABC):
    """Object store used as the song library"""

    name: str = "storage"

    def __init__(self, retries: int = 3, retry_backoff_seconds: float = 0.5):
        self.retries = max(1, retries)
        self.retry_backoff_seconds = retry_backoff_seconds

    @property
    @abstractmethod
    def bucket_name(self) -> str:
        ...

    @abstractmethod
    async def authorize(self) -> AuthorizationGrant:
        """Exchange configured account keys for a bearer credential"""

    @abstractmethod
    async def list_objects(self, credential: "Credential", prefix: Optional[str] = None) -> List[StoredObject]:
        ...

    @abstractmethod
    async def put_object(self, credential: "Credential", key: str, data: bytes, content_type: str) -> StoredObject:
        ...

    @abstractmethod
    async def delete_object(self, credential: "Credential", key: str) -> None:
        """Raises ObjectNotFound if the key does not exist"""

    @abstractmethod
    async def object_exists(self, credential: "Credential", key: str) -> bool:
        ...

    @abstractmethod
    async def sign_url(
        self,
        credential: "Credential",
        key: str,
        ttl_seconds: int,
        content_disposition: Optional[str] = None,
    ) -> str:
        """Time-bounded GET URL for one object"""

    @abstractmethod
    def object_url(self, credential: "Credential", key: str) -> str:
        """Plain (unsigned) URL for an object"""

    async def close(self) -> None:
        return None

    def _log_retry(self, description: str, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0
        logger.warning(
            f"{self.name}: {description} failed (attempt {state.attempt_number}/{self.retries}), "
            f"retrying in {delay:.2f}s: {getattr(error, 'message', error)}"
        )

    async def with_retries(self, description: str, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``call`` up to ``self.retries`` times.

        Only StorageUnavailable is retried, with linear backoff.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_incrementing(
                start=self.retry_backoff_seconds,
                increment=self.retry_backoff_seconds,
            ),
            retry=retry_if_exception_type(StorageUnavailable),
            before_sleep=lambda state: self._log_retry(description, state),
            reraise=True,
        )
        return await retrying(call)
