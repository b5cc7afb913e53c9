"""
Backblaze B2 Storage Client
===========================
Talks to the B2 native API (v2) over httpx.

Calls used:
- b2_authorize_account           -> bearer token, apiUrl, downloadUrl
- b2_list_file_names             -> paginated key listing
- b2_get_upload_url + upload     -> store an object
- b2_delete_file_version         -> remove an object (file id looked up by name)
- b2_get_download_authorization  -> per-file download token for streaming
"""

import base64
import hashlib
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote, urlencode

import httpx

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


API_PATH = "/b2api/v2"
MAX_FILE_COUNT = 1000

# B2 error codes meaning the bearer token itself is no longer usable
REJECTED_TOKEN_CODES = {"bad_auth_token", "expired_auth_token"}


def _encode_file_name(key: str) -> str:
    """B2 file names in headers and download URLs are percent-encoded, '/' kept"""
    return quote(key, safe="/")


class B2StorageClient(StorageBackend):
    """
    B2 Storage Client

    One httpx.AsyncClient is shared for the lifetime of the backend.
    """

    name = "b2"

    def __init__(
        self,
        application_key_id: str,
        application_key: str,
        bucket_id: str,
        bucket_name: str,
        auth_url: str = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account",
        timeout_seconds: float = 10.0,
        retries: int = 3,
        retry_backoff_seconds: float = 0.5,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(retries=retries, retry_backoff_seconds=retry_backoff_seconds)
        self._key_id = application_key_id
        self._key = application_key
        self.bucket_id = bucket_id
        self._bucket_name = bucket_name
        self.auth_url = auth_url
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    async def close(self) -> None:
        await self._client.aclose()

    # ========================================================================
    # HTTP HELPERS
    # ========================================================================

    def _raise_for_error(self, response: httpx.Response, during_authorize: bool = False) -> None:
        if response.is_success:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code", "")
        message = body.get("message") or response.reason_phrase
        details = {"status": response.status_code, "code": code, "message": message}

        if response.status_code == 401:
            if during_authorize:
                raise AuthenticationFailed(details=details)
            if code in REJECTED_TOKEN_CODES:
                raise CredentialRejected(details=details)
            raise AccessDenied(details=details)
        if response.status_code == 403:
            raise AccessDenied(details=details)
        if response.status_code == 404:
            raise ObjectNotFound(details=details)
        if response.status_code == 400:
            raise InvalidRequest(message or "Invalid request", details=details)
        raise StorageUnavailable(details=details)

    async def _send(self, description: str, request: httpx.Request, during_authorize: bool = False) -> Dict[str, Any]:
        async def attempt() -> Dict[str, Any]:
            try:
                response = await self._client.send(request)
            except httpx.HTTPError as e:
                raise StorageUnavailable(details={"error": type(e).__name__}) from e
            self._raise_for_error(response, during_authorize=during_authorize)
            return response.json()

        return await self.with_retries(description, attempt)

    async def _api_call(self, credential: "Credential", operation: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = self._client.build_request(
            "POST",
            f"{credential.api_url}{API_PATH}/{operation}",
            headers={"Authorization": credential.token},
            json=payload,
        )
        return await self._send(operation, request)

    @staticmethod
    def _to_object(file: Dict[str, Any]) -> StoredObject:
        uploaded = file.get("uploadTimestamp")
        return StoredObject(
            key=file["fileName"],
            size=file.get("contentLength"),
            last_modified=(
                datetime.fromtimestamp(uploaded / 1000, tz=timezone.utc) if uploaded else None
            ),
            content_type=file.get("contentType"),
            file_id=file.get("fileId"),
        )

    # ========================================================================
    # STORAGE BACKEND
    # ========================================================================

    async def authorize(self) -> AuthorizationGrant:
        basic = base64.b64encode(f"{self._key_id}:{self._key}".encode()).decode()
        request = self._client.build_request(
            "GET", self.auth_url, headers={"Authorization": f"Basic {basic}"}
        )
        data = await self._send("b2_authorize_account", request, during_authorize=True)

        allowed = data.get("allowed") or {}
        if allowed.get("bucketId") and allowed["bucketId"] != self.bucket_id:
            raise AccessDenied(
                "Application key is restricted to another bucket",
                details={"bucket": allowed.get("bucketName")},
            )

        logger.info(f"Authorized B2 account for bucket {self._bucket_name}")
        return AuthorizationGrant(
            token=data["authorizationToken"],
            api_url=data["apiUrl"],
            download_url=data["downloadUrl"],
            account_id=data.get("accountId"),
        )

    async def list_objects(self, credential: "Credential", prefix: Optional[str] = None) -> List[StoredObject]:
        objects: List[StoredObject] = []
        start_file_name: Optional[str] = None

        while True:
            payload: Dict[str, Any] = {
                "bucketId": self.bucket_id,
                "maxFileCount": MAX_FILE_COUNT,
            }
            if prefix:
                payload["prefix"] = prefix
            if start_file_name:
                payload["startFileName"] = start_file_name

            data = await self._api_call(credential, "b2_list_file_names", payload)
            objects.extend(
                self._to_object(f) for f in data.get("files", []) if f.get("action", "upload") == "upload"
            )

            start_file_name = data.get("nextFileName")
            if not start_file_name:
                break

        logger.debug(f"Listed {len(objects)} B2 objects (prefix={prefix!r})")
        return objects

    async def _find_file(self, credential: "Credential", key: str) -> Optional[Dict[str, Any]]:
        data = await self._api_call(
            credential,
            "b2_list_file_names",
            {"bucketId": self.bucket_id, "startFileName": key, "maxFileCount": 1},
        )
        for file in data.get("files", []):
            if file.get("fileName") == key:
                return file
        return None

    async def object_exists(self, credential: "Credential", key: str) -> bool:
        return await self._find_file(credential, key) is not None

    async def put_object(self, credential: "Credential", key: str, data: bytes, content_type: str) -> StoredObject:
        upload = await self._api_call(credential, "b2_get_upload_url", {"bucketId": self.bucket_id})

        request = self._client.build_request(
            "POST",
            upload["uploadUrl"],
            headers={
                "Authorization": upload["authorizationToken"],
                "X-Bz-File-Name": _encode_file_name(key),
                "Content-Type": content_type or "b2/x-auto",
                "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
            },
            content=data,
        )
        file = await self._send("b2_upload_file", request)

        logger.info(f"File uploaded to B2: {key}")
        return self._to_object(file)

    async def delete_object(self, credential: "Credential", key: str) -> None:
        file = await self._find_file(credential, key)
        if file is None:
            raise ObjectNotFound(details={"key": key})

        await self._api_call(
            credential,
            "b2_delete_file_version",
            {"fileName": key, "fileId": file["fileId"]},
        )
        logger.info(f"File deleted from B2: {key}")

    async def sign_url(
        self,
        credential: "Credential",
        key: str,
        ttl_seconds: int,
        content_disposition: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "bucketId": self.bucket_id,
            "fileNamePrefix": key,
            "validDurationInSeconds": ttl_seconds,
        }
        if content_disposition:
            payload["b2ContentDisposition"] = content_disposition

        data = await self._api_call(credential, "b2_get_download_authorization", payload)

        query = {"Authorization": data["authorizationToken"]}
        if content_disposition:
            query["b2ContentDisposition"] = content_disposition
        return f"{self.object_url(credential, key)}?{urlencode(query)}"

    def object_url(self, credential: "Credential", key: str) -> str:
        return f"{credential.download_url}/file/{quote(self._bucket_name)}/{_encode_file_name(key)}"
