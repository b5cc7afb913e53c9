"""
Credential Cache
================
Single-value holder for the storage backend's bearer credential.

The credential is immutable; a refresh builds a new one and swaps the
reference. Readers either see the old value or the new one, never a
half-updated mix, so no lock is taken. Two requests that both find the cache
empty may both refresh; the last write wins.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    """Opaque bearer token plus the base URLs it is valid for"""
    token: str = field(repr=False)
    api_url: str
    download_url: str
    issued_at: datetime
    expires_at: datetime
    account_id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @classmethod
    def issue(
        cls,
        token: str,
        api_url: str,
        download_url: str,
        ttl_seconds: int,
        now: datetime,
        account_id: Optional[str] = None,
    ) -> "Credential":
        return cls(
            token=token,
            api_url=api_url,
            download_url=download_url,
            issued_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
            account_id=account_id,
        )


class CredentialCache:
    """Atomically replaceable reference to the current credential"""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._credential: Optional[Credential] = None

    def now(self) -> datetime:
        return self._clock()

    def get(self) -> Optional[Credential]:
        """Cached credential, or None when missing or expired"""
        credential = self._credential
        if credential is None or credential.is_expired(self._clock()):
            return None
        return credential

    def put(self, credential: Credential) -> Credential:
        self._credential = credential
        return credential

    def clear(self) -> None:
        self._credential = None

    @property
    def state(self) -> str:
        return "authenticated" if self.get() is not None else "unauthenticated"
