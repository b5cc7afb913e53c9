"""
Folder Routes
=============
Folders (genres) are key prefixes; they exist while any object uses them.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status

from song_library.api.dependencies.services import get_library_service
from song_library.models.song import CreateFolderRequest, Folder, FolderCreated, FolderDeleted
from song_library.services.library.service import LibraryService


router = APIRouter()


@router.get(
    "/folders",
    response_model=List[Folder],
    summary="List folders",
    description="Distinct first path segments; the root pseudo-folder comes first when root songs exist",
    tags=["folders"],
)
async def list_folders(library: LibraryService = Depends(get_library_service)):
    return await library.list_folders()


@router.get(
    "/genres",
    response_model=List[Folder],
    summary="List genres",
    description="Alias of /folders",
    tags=["folders"],
)
async def list_genres(library: LibraryService = Depends(get_library_service)):
    return await library.list_folders()


@router.post(
    "/folders",
    response_model=FolderCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create a folder",
    tags=["folders"],
)
async def create_folder(
    payload: Optional[CreateFolderRequest] = Body(None),
    library: LibraryService = Depends(get_library_service),
):
    return await library.create_folder(payload.name if payload else None)


@router.delete(
    "/folders/{name}",
    response_model=FolderDeleted,
    summary="Delete a folder and its contents",
    tags=["folders"],
)
async def delete_folder(
    name: str,
    library: LibraryService = Depends(get_library_service),
):
    return await library.delete_folder(name)
