"""
Song Library Models
===================
Pydantic models for stored objects, derived folders/songs, and signed URLs.

Response models serialize with camelCase aliases (``lastModified``,
``expiresAt``) to keep the JSON shape existing clients expect.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StoredObject(BaseModel):
    """One object as reported by a storage backend listing"""
    key: str = Field(..., description="Object key, '/' separated")
    size: Optional[int] = Field(default=None, description="Size in bytes")
    last_modified: Optional[datetime] = Field(default=None)
    content_type: Optional[str] = Field(default=None)
    file_id: Optional[str] = Field(default=None, description="Backend file id (B2)")


class Folder(BaseModel):
    """Folder (genre) derived from the first path segment of object keys"""
    name: str = Field(..., description="Display name")
    path: str = Field(..., description="Key prefix, '' for the root pseudo-folder")


class Song(BaseModel):
    """Song view of a stored object"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Key with its folder prefix removed")
    key: str = Field(..., description="Full object key")
    url: str = Field(..., description="Access URL")
    folder: str = Field(default="", description="Derived folder, '' for root items")
    size: Optional[int] = Field(default=None)
    last_modified: Optional[datetime] = Field(default=None, alias="lastModified")


class SignedURL(BaseModel):
    """Time-bounded access URL for a single object"""
    model_config = ConfigDict(populate_by_name=True)

    key: str
    url: str
    expires_at: int = Field(..., alias="expiresAt", description="Expiry, epoch milliseconds")


class UploadResult(BaseModel):
    message: str
    key: str
    url: str
    folder: str


class FolderCreated(BaseModel):
    message: str
    name: str


class FolderDeleted(BaseModel):
    message: str
    deleted: int


class SongDeleted(BaseModel):
    message: str
    key: str


class CreateFolderRequest(BaseModel):
    name: Optional[str] = Field(default=None, description="Folder name, no '/'")
