"""
Shared fixtures: an in-memory storage backend, a controllable clock, and a
FastAPI app wired to them.
"""
import os

os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from song_library.core.config import Settings
from song_library.core.exceptions import (
    AuthenticationFailed,
    CredentialRejected,
    ObjectNotFound,
    StorageUnavailable,
)
from song_library.models.song import StoredObject
from song_library.services.cache import ListingCache, RedisClient, redis_manager
from song_library.services.credentials import CredentialCache, CredentialIssuer
from song_library.services.library.service import LibraryService
from song_library.services.storage.base import AuthorizationGrant, StorageBackend


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeStorageBackend(StorageBackend):
    """In-memory bucket that counts backend calls"""

    name = "fake"

    def __init__(self, keys: Optional[List[str]] = None):
        super().__init__(retries=1, retry_backoff_seconds=0)
        self.objects: Dict[str, StoredObject] = {}
        self.data: Dict[str, bytes] = {}
        self.authorize_calls = 0
        self.list_calls = 0
        self.sign_calls = 0
        self.reject_tokens: set = set()
        self.fail_listing = False
        self.fail_authorize = False
        self.validate_existence = False
        self.fail_deletes: set = set()
        for key in keys or []:
            self.add(key, b"audio")

    @property
    def bucket_name(self) -> str:
        return "test-bucket"

    def add(self, key: str, data: bytes = b"audio", content_type: str = "audio/mpeg") -> None:
        self.objects[key] = StoredObject(
            key=key,
            size=len(data),
            last_modified=datetime(2026, 1, 1, tzinfo=timezone.utc),
            content_type=content_type,
        )
        self.data[key] = data

    def _check(self, credential) -> None:
        if credential.token in self.reject_tokens:
            raise CredentialRejected()

    async def authorize(self) -> AuthorizationGrant:
        if self.fail_authorize:
            raise AuthenticationFailed(details={"code": "unauthorized"})
        self.authorize_calls += 1
        return AuthorizationGrant(
            token=f"token-{self.authorize_calls}",
            api_url="https://api.fake.example",
            download_url="https://download.fake.example",
            account_id="account",
        )

    async def list_objects(self, credential, prefix=None):
        self._check(credential)
        self.list_calls += 1
        if self.fail_listing:
            raise StorageUnavailable(details={"status": 503})
        return [
            obj for key, obj in self.objects.items()
            if not prefix or key.startswith(prefix)
        ]

    async def put_object(self, credential, key, data, content_type):
        self._check(credential)
        self.add(key, data, content_type)
        return self.objects[key]

    async def delete_object(self, credential, key):
        self._check(credential)
        if key in self.fail_deletes:
            raise StorageUnavailable(details={"key": key})
        if key not in self.objects:
            raise ObjectNotFound(details={"key": key})
        del self.objects[key]
        del self.data[key]

    async def object_exists(self, credential, key):
        self._check(credential)
        return key in self.objects

    async def sign_url(self, credential, key, ttl_seconds, content_disposition=None):
        self._check(credential)
        self.sign_calls += 1
        if self.validate_existence and key not in self.objects:
            raise ObjectNotFound(details={"key": key})
        url = f"{credential.download_url}/file/{self.bucket_name}/{quote(key, safe='/')}?Authorization={credential.token}"
        if content_disposition:
            url += "&b2ContentDisposition=" + quote(content_disposition)
        return url

    def object_url(self, credential, key):
        return f"{credential.download_url}/file/{self.bucket_name}/{quote(key, safe='/')}"


SAMPLE_KEYS = ["jazz/a.mp3", "jazz/b.mp3", "rock/c.mp3", "root.mp3"]


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="testing",
        STORAGE_BACKEND="b2",
        B2_APPLICATION_KEY_ID="key-id",
        B2_APPLICATION_KEY="key",
        B2_BUCKET_ID="bucket-id",
        B2_BUCKET_NAME="test-bucket",
        MAX_UPLOAD_SIZE_MB=1,
        REDIS_ENABLE=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_backend() -> FakeStorageBackend:
    return FakeStorageBackend(SAMPLE_KEYS)


@pytest.fixture
def issuer(fake_backend, clock) -> CredentialIssuer:
    return CredentialIssuer(
        fake_backend,
        cache=CredentialCache(clock=clock),
        credential_ttl_seconds=3600,
        max_url_ttl_seconds=7 * 24 * 3600,
    )


@pytest.fixture
def library_service(fake_backend, issuer, test_settings) -> LibraryService:
    listing_cache = ListingCache(
        RedisClient(redis_manager, enabled=False),
        backend=fake_backend.name,
        bucket=fake_backend.bucket_name,
        enabled=False,
    )
    return LibraryService(fake_backend, issuer, listing_cache, test_settings)


@pytest.fixture
def client(library_service):
    from song_library.main import create_app

    app = create_app()
    app.state.library_service = library_service
    with TestClient(app) as test_client:
        yield test_client
