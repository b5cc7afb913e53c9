"""
S3-Compatible Storage Client
============================
Song storage on any S3-compatible endpoint: AWS S3, Cloudflare R2, Backblaze
B2's S3 endpoint, or Google Cloud Storage through its XML interoperability
endpoint (``https://storage.googleapis.com`` with HMAC keys).

Streaming URLs are SigV4 presigned GETs, so the access token travels in the
query string.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote

import aioboto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from song_library.core.exceptions import (
    AccessDenied,
    AuthenticationFailed,
    CredentialRejected,
    InvalidRequest,
    ObjectNotFound,
    StorageUnavailable,
)
from song_library.core.logging_config import get_logger
from song_library.models.song import StoredObject
from song_library.services.storage.base import AuthorizationGrant, StorageBackend

if TYPE_CHECKING:
    from song_library.services.credentials.cache import Credential


logger = get_logger(__name__)


NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
BAD_KEY_CODES = {"InvalidAccessKeyId", "SignatureDoesNotMatch", "InvalidToken"}
EXPIRED_CODES = {"ExpiredToken", "RequestExpired"}


def map_client_error(error: ClientError, during_authorize: bool = False) -> Exception:
    """Translate a botocore ClientError into a library error"""
    info = error.response.get("Error", {})
    code = str(info.get("Code", ""))
    status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    details = {"status": status_code, "code": code, "message": info.get("Message")}

    if during_authorize and (code in NOT_FOUND_CODES or status_code == 404):
        return StorageUnavailable("Bucket not found", details=details)
    if code in NOT_FOUND_CODES:
        return ObjectNotFound(details=details)
    if code == "NoSuchBucket":
        return StorageUnavailable("Bucket not found", details=details)
    if code in BAD_KEY_CODES or (during_authorize and status_code in (401, 403)):
        return AuthenticationFailed(details=details)
    if code in EXPIRED_CODES:
        return CredentialRejected(details=details)
    if status_code == 403 or code == "AccessDenied":
        return AccessDenied(details=details)
    if status_code == 400:
        return InvalidRequest(info.get("Message") or "Invalid request", details=details)
    return StorageUnavailable(details=details)


class S3StorageClient(StorageBackend):
    """
    S3 Storage Client

    Opens one aioboto3 client per operation; timeouts and bounded retries are
    set through botocore's Config.
    """

    name = "s3"

    def __init__(
        self,
        endpoint_url: str,
        access_key_id: str,
        secret_access_key: str,
        bucket_name: str,
        region_name: str = "auto",
        public_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        retries: int = 3,
        retry_backoff_seconds: float = 0.5,
        session: Optional[aioboto3.Session] = None,
    ):
        super().__init__(retries=retries, retry_backoff_seconds=retry_backoff_seconds)
        self.endpoint_url = endpoint_url.rstrip("/")
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._bucket_name = bucket_name
        self.region_name = region_name
        self.public_url = public_url.rstrip("/") if public_url else None
        self._session = session or aioboto3.Session()
        self._config = BotoConfig(
            signature_version="s3v4",
            connect_timeout=timeout_seconds,
            read_timeout=timeout_seconds,
            retries={"max_attempts": retries, "mode": "standard"},
        )

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def _client(self):
        return self._session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            region_name=self.region_name,
            config=self._config,
        )

    async def _head(self, s3_client, key: str) -> Dict[str, Any]:
        try:
            return await s3_client.head_object(Bucket=self._bucket_name, Key=key)
        except ClientError as e:
            raise map_client_error(e) from e

    # ========================================================================
    # STORAGE BACKEND
    # ========================================================================

    async def authorize(self) -> AuthorizationGrant:
        """
        Verify the access keys against the bucket.

        SigV4 signing happens locally, so the "token" is the access key id
        and the credential only records that the keys were accepted.
        """
        try:
            async with self._client() as s3_client:
                await s3_client.head_bucket(Bucket=self._bucket_name)
        except ClientError as e:
            raise map_client_error(e, during_authorize=True) from e
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e

        logger.info(f"S3 keys accepted for bucket {self._bucket_name} at {self.endpoint_url}")
        return AuthorizationGrant(
            token=self._access_key_id,
            api_url=self.endpoint_url,
            download_url=self.public_url or f"{self.endpoint_url}/{quote(self._bucket_name)}",
        )

    async def list_objects(self, credential: "Credential", prefix: Optional[str] = None) -> List[StoredObject]:
        params: Dict[str, Any] = {"Bucket": self._bucket_name}
        if prefix:
            params["Prefix"] = prefix

        objects: List[StoredObject] = []
        try:
            async with self._client() as s3_client:
                paginator = s3_client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(**params):
                    for item in page.get("Contents", []):
                        objects.append(StoredObject(
                            key=item["Key"],
                            size=item.get("Size"),
                            last_modified=item.get("LastModified"),
                        ))
        except ClientError as e:
            raise map_client_error(e) from e
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e

        logger.debug(f"Listed {len(objects)} S3 objects (prefix={prefix!r})")
        return objects

    async def put_object(self, credential: "Credential", key: str, data: bytes, content_type: str) -> StoredObject:
        try:
            async with self._client() as s3_client:
                await s3_client.put_object(
                    Bucket=self._bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
        except ClientError as e:
            raise map_client_error(e) from e
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e

        logger.bind(bucket=self._bucket_name, size=len(data)).info(f"File uploaded to S3: {key}")
        return StoredObject(
            key=key,
            size=len(data),
            last_modified=datetime.now(timezone.utc),
            content_type=content_type,
        )

    async def delete_object(self, credential: "Credential", key: str) -> None:
        try:
            async with self._client() as s3_client:
                # delete_object succeeds for missing keys; check first
                await self._head(s3_client, key)
                await s3_client.delete_object(Bucket=self._bucket_name, Key=key)
        except ClientError as e:
            raise map_client_error(e) from e
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e

        logger.info(f"File deleted from S3: {key}")

    async def object_exists(self, credential: "Credential", key: str) -> bool:
        try:
            async with self._client() as s3_client:
                await self._head(s3_client, key)
        except ObjectNotFound:
            return False
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e
        return True

    async def sign_url(
        self,
        credential: "Credential",
        key: str,
        ttl_seconds: int,
        content_disposition: Optional[str] = None,
    ) -> str:
        params: Dict[str, Any] = {"Bucket": self._bucket_name, "Key": key}
        if content_disposition:
            params["ResponseContentDisposition"] = content_disposition

        try:
            async with self._client() as s3_client:
                await self._head(s3_client, key)
                return await s3_client.generate_presigned_url(
                    ClientMethod="get_object",
                    Params=params,
                    ExpiresIn=int(ttl_seconds),
                )
        except ClientError as e:
            raise map_client_error(e) from e
        except BotoCoreError as e:
            raise StorageUnavailable(details={"error": type(e).__name__}) from e

    def object_url(self, credential: "Credential", key: str) -> str:
        return f"{credential.download_url}/{quote(key, safe='/')}"
