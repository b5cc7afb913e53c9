"""
Library Service
===============
Request-level operations of the song library: listings and search (through
the taxonomy functions), streaming URLs (through the credential issuer), and
uploads/deletes against the storage backend.
"""

import asyncio
import mimetypes
from typing import TYPE_CHECKING, List, Optional

from song_library.core.config import Settings
from song_library.core.exceptions import InvalidRequest, ObjectExists, ObjectNotFound
from song_library.core.logging_config import get_logger
from song_library.models.song import (
    Folder,
    FolderCreated,
    FolderDeleted,
    SignedURL,
    Song,
    SongDeleted,
    StoredObject,
    UploadResult,
)
from song_library.services.cache.listing import ListingCache
from song_library.services.library import taxonomy

if TYPE_CHECKING:
    from song_library.services.credentials.issuer import CredentialIssuer
    from song_library.services.storage.base import StorageBackend


logger = get_logger(__name__)


AUDIO_CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".oga": "audio/ogg",
    ".opus": "audio/opus",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".weba": "audio/webm",
}

FOLDER_DELETE_CONCURRENCY = 8


def resolve_content_type(filename: str, declared: Optional[str]) -> str:
    """
    Content type to store an upload with.

    Declared ``audio/*`` types are kept; otherwise the extension decides.

    Raises:
        InvalidRequest: Neither the declared type nor the extension is audio
    """
    declared = (declared or "").split(";", 1)[0].strip().lower()
    if declared.startswith("audio/"):
        return declared

    extension = ("." + filename.rsplit(".", 1)[-1].lower()) if "." in filename else ""
    if extension in AUDIO_CONTENT_TYPES:
        return AUDIO_CONTENT_TYPES[extension]

    guessed, _ = mimetypes.guess_type(filename)
    if guessed and guessed.startswith("audio/"):
        return guessed

    raise InvalidRequest(
        "File type not allowed",
        details={"allowed": sorted(AUDIO_CONTENT_TYPES)},
    )


class LibraryService:
    """
    Library Service

    Stateless apart from the issuer's credential and the listing cache.
    """

    def __init__(
        self,
        backend: "StorageBackend",
        issuer: "CredentialIssuer",
        listing_cache: ListingCache,
        settings: Settings,
    ):
        self.backend = backend
        self.issuer = issuer
        self.listing_cache = listing_cache
        self.settings = settings

    @property
    def root_label(self) -> str:
        return self.settings.ROOT_FOLDER_LABEL

    # ========================================================================
    # HELPERS
    # ========================================================================

    def resolve_folder(self, folder: Optional[str]) -> Optional[str]:
        """
        Map a folder argument to a taxonomy filter.

        None -> all songs; "" or the root label -> root items; otherwise a
        validated folder name.
        """
        if folder is None:
            return None
        stripped = folder.strip().strip(taxonomy.DELIMITER)
        if not stripped or stripped.lower() == self.root_label.lower():
            return taxonomy.ROOT_FOLDER_PATH
        return taxonomy.normalize_folder_name(stripped)

    def writable_folder(self, name: Optional[str], allow_root: bool = False) -> str:
        """
        Validate a folder name for create/upload.

        Raises:
            InvalidRequest: Invalid name, or the name of the root pseudo-folder
        """
        folder = taxonomy.normalize_folder_name(name, allow_root=allow_root)
        if folder and taxonomy.is_root_label(folder, self.root_label):
            raise InvalidRequest("Folder name is reserved", details={"folder": folder})
        return folder

    async def _list_objects(self) -> List[StoredObject]:
        # Whole bucket: a backend prefix would miss keys with leading slashes
        cached = await self.listing_cache.get()
        if cached is not None:
            return cached

        objects = await self.issuer.run(lambda credential: self.backend.list_objects(credential))
        await self.listing_cache.put(objects)
        return objects

    async def _delete_objects(self, keys: List[str]) -> List[Exception]:
        semaphore = asyncio.Semaphore(FOLDER_DELETE_CONCURRENCY)

        async def delete(key: str) -> None:
            async with semaphore:
                await self.issuer.run(lambda credential: self.backend.delete_object(credential, key))

        results = await asyncio.gather(*(delete(key) for key in keys), return_exceptions=True)
        # Already gone counts as deleted
        return [
            result for result in results
            if isinstance(result, Exception) and not isinstance(result, ObjectNotFound)
        ]

    async def _url_builder(self) -> taxonomy.UrlBuilder:
        credential = await self.issuer.ensure_credential()
        return lambda key: self.backend.object_url(credential, key)

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    async def list_folders(self) -> List[Folder]:
        objects = await self._list_objects()
        folders = taxonomy.list_folders(objects, root_label=self.root_label)
        logger.debug(f"Resolved {len(folders)} folders from {len(objects)} objects")
        return folders

    async def list_songs(self, folder: Optional[str] = None) -> List[Song]:
        folder = self.resolve_folder(folder)

        objects = await self._list_objects()
        url_for = await self._url_builder()
        return taxonomy.list_songs(objects, folder, url_for=url_for)

    async def search(self, query: Optional[str]) -> List[Song]:
        objects = await self._list_objects()
        url_for = await self._url_builder()
        results = taxonomy.search(objects, query, url_for=url_for)
        logger.debug(f"Search {query!r} matched {len(results)} songs")
        return results

    async def stream_url(
        self,
        key: str,
        ttl_seconds: Optional[int] = None,
        download: bool = False,
    ) -> SignedURL:
        ttl_seconds = ttl_seconds or self.settings.STREAM_URL_TTL_SECONDS
        content_disposition = None
        if download:
            filename = taxonomy.basename(key).replace('"', "")
            content_disposition = f'attachment; filename="{filename}"'
        return await self.issuer.issue_access_url(key, ttl_seconds, content_disposition)

    # ========================================================================
    # WRITE OPERATIONS
    # ========================================================================

    async def upload_song(
        self,
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str] = None,
        folder: Optional[str] = None,
    ) -> UploadResult:
        """
        Store a new song.

        Raises:
            InvalidRequest: Missing name, empty or oversized file, non-audio type
            ObjectExists: Key taken and overwriting is disabled
        """
        if not filename:
            raise InvalidRequest("No file uploaded")
        if not data:
            raise InvalidRequest("File is empty")
        if len(data) > self.settings.max_upload_size_bytes:
            raise InvalidRequest(
                f"File too large. Maximum size: {self.settings.MAX_UPLOAD_SIZE_MB}MB"
            )

        key = taxonomy.build_object_key(self.writable_folder(folder, allow_root=True), filename)
        stored_type = resolve_content_type(filename, content_type)

        if not self.settings.ALLOW_OVERWRITE:
            exists = await self.issuer.run(
                lambda credential: self.backend.object_exists(credential, key)
            )
            if exists:
                logger.warning(f"Duplicate upload attempt: {key}")
                raise ObjectExists(details={"key": key})

        await self.issuer.run(
            lambda credential: self.backend.put_object(credential, key, data, stored_type)
        )
        await self.listing_cache.invalidate()

        credential = await self.issuer.ensure_credential()
        logger.bind(size=len(data), content_type=stored_type).info(f"Song uploaded: {key}")
        return UploadResult(
            message="File uploaded successfully",
            key=key,
            url=self.backend.object_url(credential, key),
            folder=taxonomy.derive_folder(key) or "",
        )

    async def delete_song(self, key: str) -> SongDeleted:
        key = taxonomy.normalize_key(key or "")
        if not key:
            raise InvalidRequest("Song key is required")

        await self.issuer.run(lambda credential: self.backend.delete_object(credential, key))
        await self.listing_cache.invalidate()

        logger.info(f"Song deleted: {key}")
        return SongDeleted(message="File deleted successfully", key=key)

    async def create_folder(self, name: Optional[str]) -> FolderCreated:
        folder = self.writable_folder(name)
        placeholder = f"{folder}{taxonomy.DELIMITER}{taxonomy.FOLDER_PLACEHOLDER}"

        await self.issuer.run(
            lambda credential: self.backend.put_object(credential, placeholder, b"", "text/plain")
        )
        await self.listing_cache.invalidate()

        logger.info(f"Folder created: {folder}")
        return FolderCreated(message="Folder created successfully", name=folder)

    async def delete_folder(self, name: Optional[str]) -> FolderDeleted:
        """
        Delete a folder and everything under it.

        The listing cache is dropped even when some deletes fail.

        Raises:
            ObjectNotFound: Nothing is stored under the folder
            SongLibraryError: First failed delete
        """
        folder = taxonomy.normalize_folder_name(name)

        objects = await self.issuer.run(lambda credential: self.backend.list_objects(credential))
        keys = [obj.key for obj in objects if taxonomy.derive_folder(obj.key) == folder]
        if not keys:
            raise ObjectNotFound("Folder not found", details={"folder": folder})

        try:
            failures = await self._delete_objects(keys)
        finally:
            await self.listing_cache.invalidate()

        if failures:
            logger.bind(failed=len(failures)).error(
                f"Folder delete incomplete: {folder} ({len(keys) - len(failures)}/{len(keys)} objects)"
            )
            raise failures[0]

        logger.info(f"Folder deleted: {folder} ({len(keys)} objects)")
        return FolderDeleted(
            message="Folder and its contents deleted successfully",
            deleted=len(keys),
        )
