"""
Tests for the S3-compatible client, with a stand-in aioboto3 session
"""

from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from song_library.core.exceptions import (
    AccessDenied,
    AuthenticationFailed,
    CredentialRejected,
    InvalidRequest,
    ObjectNotFound,
    StorageUnavailable,
)
from song_library.services.credentials import Credential
from song_library.services.storage import S3StorageClient
from song_library.services.storage.s3_client import map_client_error


def client_error(code, status, operation="HeadObject"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakePaginator:

    def __init__(self, pages):
        self.pages = pages
        self.params = None

    async def _iterate(self):
        for page in self.pages:
            yield page

    def paginate(self, **params):
        self.params = params
        return self._iterate()


class FakeS3Client:

    def __init__(self, store):
        self.store = store

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def head_bucket(self, Bucket):
        if self.store.head_bucket_error:
            raise self.store.head_bucket_error
        return {}

    async def head_object(self, Bucket, Key):
        if Key not in self.store.objects:
            raise client_error("404", 404)
        return {"ContentLength": len(self.store.objects[Key])}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        keys = sorted(self.store.objects)
        pages = [
            {"Contents": [
                {"Key": k, "Size": len(self.store.objects[k]), "LastModified": datetime(2026, 1, 1, tzinfo=timezone.utc)}
                for k in keys[i:i + 2]
            ]}
            for i in range(0, len(keys), 2)
        ]
        self.store.paginator = FakePaginator(pages)
        return self.store.paginator

    async def put_object(self, Bucket, Key, Body, ContentType):
        self.store.objects[Key] = Body
        self.store.content_types[Key] = ContentType

    async def delete_object(self, Bucket, Key):
        self.store.objects.pop(Key, None)

    async def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        self.store.presign_calls.append((ClientMethod, Params, ExpiresIn))
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=sig"


class FakeSession:

    def __init__(self):
        self.objects = {"jazz/a.mp3": b"aa", "jazz/b.mp3": b"bb", "root.mp3": b"r"}
        self.content_types = {}
        self.presign_calls = []
        self.head_bucket_error = None
        self.paginator = None
        self.client_kwargs = None

    def client(self, service_name, **kwargs):
        assert service_name == "s3"
        self.client_kwargs = kwargs
        return FakeS3Client(self)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def s3(session):
    return S3StorageClient(
        endpoint_url="https://s3.test/",
        access_key_id="AKIA",
        secret_access_key="secret",
        bucket_name="songs",
        retry_backoff_seconds=0,
        session=session,
    )


@pytest.fixture
def credential(clock):
    return Credential.issue("AKIA", "https://s3.test", "https://s3.test/songs", 3600, clock())


# ============================================================================
# MAP CLIENT ERROR
# ============================================================================

@pytest.mark.parametrize(
    "code,status,expected",
    [
        ("404", 404, ObjectNotFound),
        ("NoSuchKey", 404, ObjectNotFound),
        ("NoSuchBucket", 404, StorageUnavailable),
        ("InvalidAccessKeyId", 403, AuthenticationFailed),
        ("SignatureDoesNotMatch", 403, AuthenticationFailed),
        ("ExpiredToken", 400, CredentialRejected),
        ("AccessDenied", 403, AccessDenied),
        ("InvalidArgument", 400, InvalidRequest),
        ("InternalError", 500, StorageUnavailable),
        ("SlowDown", 503, StorageUnavailable),
    ],
)
def test_client_error_mapping(code, status, expected):
    assert type(map_client_error(client_error(code, status))) is expected


def test_forbidden_during_authorize_is_authentication_failure():
    error = map_client_error(client_error("403", 403, "HeadBucket"), during_authorize=True)

    assert type(error) is AuthenticationFailed


def test_missing_bucket_during_authorize_is_unavailable():
    error = map_client_error(client_error("404", 404, "HeadBucket"), during_authorize=True)

    assert type(error) is StorageUnavailable
    assert error.message == "Bucket not found"


def test_details_carry_status():
    error = map_client_error(client_error("AccessDenied", 403))

    assert error.details["status"] == 403
    assert error.details["code"] == "AccessDenied"


# ============================================================================
# AUTHORIZE
# ============================================================================

@pytest.mark.asyncio
async def test_authorize_checks_bucket(s3, session):
    grant = await s3.authorize()

    assert grant.token == "AKIA"
    assert grant.api_url == "https://s3.test"
    assert grant.download_url == "https://s3.test/songs"
    assert session.client_kwargs["endpoint_url"] == "https://s3.test"
    assert session.client_kwargs["config"].signature_version == "s3v4"


@pytest.mark.asyncio
async def test_public_url(session):
    client = S3StorageClient(
        "https://s3.test", "AKIA", "secret", "songs",
        public_url="https://cdn.example.com/",
        session=session,
    )

    grant = await client.authorize()

    assert grant.download_url == "https://cdn.example.com"


@pytest.mark.asyncio
async def test_rejected_keys(s3, session):
    session.head_bucket_error = client_error("403", 403, "HeadBucket")

    with pytest.raises(AuthenticationFailed):
        await s3.authorize()


@pytest.mark.asyncio
async def test_missing_bucket(s3, session):
    session.head_bucket_error = client_error("404", 404, "HeadBucket")

    with pytest.raises(StorageUnavailable):
        await s3.authorize()


@pytest.mark.asyncio
async def test_unreachable_endpoint(s3, session):
    session.head_bucket_error = EndpointConnectionError(endpoint_url="https://s3.test")

    with pytest.raises(StorageUnavailable):
        await s3.authorize()


# ============================================================================
# OBJECTS
# ============================================================================

@pytest.mark.asyncio
async def test_list_all_pages(s3, credential):
    objects = await s3.list_objects(credential)

    assert [o.key for o in objects] == ["jazz/a.mp3", "jazz/b.mp3", "root.mp3"]
    assert objects[0].size == 2


@pytest.mark.asyncio
async def test_list_passes_prefix(s3, session, credential):
    await s3.list_objects(credential, "jazz/")

    assert session.paginator.params == {"Bucket": "songs", "Prefix": "jazz/"}


@pytest.mark.asyncio
async def test_put_object(s3, session, credential):
    stored = await s3.put_object(credential, "rock/new.mp3", b"xyz", "audio/mpeg")

    assert session.objects["rock/new.mp3"] == b"xyz"
    assert session.content_types["rock/new.mp3"] == "audio/mpeg"
    assert stored.size == 3


@pytest.mark.asyncio
async def test_object_exists(s3, credential):
    assert await s3.object_exists(credential, "root.mp3")
    assert not await s3.object_exists(credential, "missing.mp3")


@pytest.mark.asyncio
async def test_delete_object(s3, session, credential):
    await s3.delete_object(credential, "root.mp3")

    assert "root.mp3" not in session.objects


@pytest.mark.asyncio
async def test_delete_missing_object(s3, credential):
    with pytest.raises(ObjectNotFound):
        await s3.delete_object(credential, "missing.mp3")


# ============================================================================
# URLS
# ============================================================================

@pytest.mark.asyncio
async def test_presigned_get(s3, session, credential):
    url = await s3.sign_url(credential, "jazz/a.mp3", 900)

    assert "X-Amz-Expires=900" in url
    method, params, expires = session.presign_calls[0]
    assert method == "get_object"
    assert params == {"Bucket": "songs", "Key": "jazz/a.mp3"}
    assert expires == 900


@pytest.mark.asyncio
async def test_presigned_download(s3, session, credential):
    await s3.sign_url(credential, "jazz/a.mp3", 60, 'attachment; filename="a.mp3"')

    _, params, _ = session.presign_calls[0]
    assert params["ResponseContentDisposition"] == 'attachment; filename="a.mp3"'


@pytest.mark.asyncio
async def test_missing_key_not_signed(s3, session, credential):
    with pytest.raises(ObjectNotFound):
        await s3.sign_url(credential, "missing.mp3", 60)
    assert session.presign_calls == []


def test_object_url(s3, credential):
    assert s3.object_url(credential, "jazz/my song.mp3") == "https://s3.test/songs/jazz/my%20song.mp3"
