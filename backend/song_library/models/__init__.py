"""
Data Models
===========
Pydantic models used by the services and the HTTP layer.
"""

from song_library.models.song import (
    StoredObject,
    Folder,
    Song,
    SignedURL,
    UploadResult,
    FolderCreated,
    FolderDeleted,
    SongDeleted,
    CreateFolderRequest,
)

__all__ = [
    "StoredObject",
    "Folder",
    "Song",
    "SignedURL",
    "UploadResult",
    "FolderCreated",
    "FolderDeleted",
    "SongDeleted",
    "CreateFolderRequest",
]
