"""
Library Routes
==============
Song listing, search, streaming, upload and delete endpoints.

Endpoints:
- GET    /songs              - All songs (``?folder=`` filters)
- GET    /songs/{folder}     - Songs in one folder (root label -> root songs)
- GET    /search?q=          - Search songs by file or folder name
- GET    /stream/{key}       - Temporary playback URL
- POST   /upload             - Upload a song (multipart field ``song``)
- DELETE /songs/{key}        - Delete a song
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from song_library.api.dependencies.services import get_library_service
from song_library.core.exceptions import InvalidRequest
from song_library.core.logging_config import get_logger
from song_library.models.song import SignedURL, Song, SongDeleted, UploadResult
from song_library.services.library.service import LibraryService


logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# LISTING & SEARCH
# ============================================================================

@router.get(
    "/songs",
    response_model=List[Song],
    summary="List songs",
    description="List every song, or only the songs of one folder with ?folder=",
    tags=["songs"],
)
async def list_songs(
    folder: Optional[str] = Query(None, description="Folder name; empty or the root label for root songs"),
    library: LibraryService = Depends(get_library_service),
):
    return await library.list_songs(folder)


@router.get(
    "/songs/{folder}",
    response_model=List[Song],
    summary="List songs in a folder",
    tags=["songs"],
)
async def list_folder_songs(
    folder: str,
    library: LibraryService = Depends(get_library_service),
):
    return await library.list_songs(folder)


@router.get(
    "/search",
    response_model=List[Song],
    summary="Search songs",
    description="Case-insensitive match on file and folder names. An empty query returns every song.",
    tags=["songs"],
)
async def search_songs(
    q: Optional[str] = Query(None, description="Search text"),
    query: Optional[str] = Query(None, description="Alias of q"),
    library: LibraryService = Depends(get_library_service),
):
    return await library.search(q if q is not None else query)


# ============================================================================
# STREAMING
# ============================================================================

@router.get(
    "/stream/{key:path}",
    response_model=SignedURL,
    summary="Get a temporary playback URL",
    tags=["songs"],
)
async def stream_song(
    key: str,
    ttl: Optional[int] = Query(None, ge=1, description="URL lifetime in seconds"),
    download: bool = Query(False, description="Ask the browser to save instead of play"),
    library: LibraryService = Depends(get_library_service),
):
    return await library.stream_url(key, ttl_seconds=ttl, download=download)


# ============================================================================
# UPLOAD & DELETE
# ============================================================================

@router.post(
    "/upload",
    response_model=UploadResult,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a song",
    description="Multipart upload; field 'song' holds the file, 'folder' or 'genre' the target folder",
    tags=["songs"],
)
async def upload_song(
    song: Optional[UploadFile] = File(None, description="Audio file"),
    folder: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    library: LibraryService = Depends(get_library_service),
):
    if song is None or not song.filename:
        raise InvalidRequest("No file uploaded")

    data = await song.read()
    return await library.upload_song(
        filename=song.filename,
        data=data,
        content_type=song.content_type,
        folder=folder if folder is not None else genre,
    )


@router.delete(
    "/songs/{key:path}",
    response_model=SongDeleted,
    summary="Delete a song",
    tags=["songs"],
)
async def delete_song(
    key: str,
    library: LibraryService = Depends(get_library_service),
):
    return await library.delete_song(key)
