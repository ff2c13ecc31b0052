"""
File and directory endpoints.

Also serves the targets of local-storage public and temporary URLs.
"""

import time
from typing import AsyncIterator

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import Response, StreamingResponse

from filestorage.core.exceptions import (
    FileNotFoundException,
    ForbiddenException,
    MimeTypeNotAvailable,
    PayloadTooLargeException,
    ValidationException,
)
from filestorage.dependencies import AppSettings, Storage
from filestorage.schemas.error import ErrorResponse
from filestorage.schemas.file import (
    ChecksumResponse,
    DirectoryListingResponse,
    StatEntryResponse,
    UrlResponse,
    VisibilityResponse,
)
from filestorage.storage import FileStorage, LocalStorageAdapter, Visibility, normalize_path
from filestorage.storage.base import DEFAULT_CHUNK_SIZE

router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        501: {"model": ErrorResponse},
    }
)

GENERIC_MIME_TYPE = "application/octet-stream"


async def _upload_chunks(file: UploadFile) -> AsyncIterator[bytes]:
    while chunk := await file.read(DEFAULT_CHUNK_SIZE):
        yield chunk


async def _stream_file(storage: FileStorage, path: str) -> StreamingResponse:
    """Build a streaming response; fails with 404 before any byte is sent."""
    stream = await storage.read(path)

    try:
        media_type = await storage.mime_type(path)
    except MimeTypeNotAvailable:
        media_type = GENERIC_MIME_TYPE

    return StreamingResponse(stream, media_type=media_type)


@router.get("/files", response_model=DirectoryListingResponse)
async def list_files(
    storage: Storage,
    path: str = Query(default="", description="Directory to list"),
    deep: bool = Query(default=False, description="Include all descendants"),
):
    """List entries under a directory."""
    entries = await storage.list(path, deep=deep).to_list()

    return DirectoryListingResponse(
        path=path,
        deep=deep,
        items=[StatEntryResponse.from_entry(entry) for entry in entries],
        total=len(entries),
    )


@router.get("/files/stat", response_model=StatEntryResponse)
async def stat_file(storage: Storage, path: str = Query(...)):
    """Get metadata for a file or directory."""
    return StatEntryResponse.from_entry(await storage.stat(path))


@router.get("/files/checksum", response_model=ChecksumResponse)
async def file_checksum(
    storage: Storage,
    path: str = Query(...),
    algo: str | None = Query(default=None, description="Backend default when omitted"),
):
    """Get a checksum for a file."""
    checksum = await storage.checksum(path, algo=algo)
    return ChecksumResponse(path=path, algo=algo, checksum=checksum)


@router.get("/files/visibility", response_model=VisibilityResponse)
async def get_visibility(storage: Storage, path: str = Query(...)):
    return VisibilityResponse(path=path, visibility=await storage.visibility(path))


@router.put("/files/visibility", response_model=VisibilityResponse)
async def change_visibility(
    storage: Storage,
    path: str = Query(...),
    visibility: Visibility = Query(...),
):
    await storage.change_visibility(path, visibility)
    return VisibilityResponse(path=path, visibility=visibility)


@router.get("/files/public-url", response_model=UrlResponse)
async def public_url(storage: Storage, path: str = Query(...)):
    return UrlResponse(path=path, url=await storage.public_url(path))


@router.get("/files/temporary-url", response_model=UrlResponse)
async def temporary_url(
    storage: Storage,
    path: str = Query(...),
    expires_in: int = Query(default=3600, ge=1, description="Lifetime in seconds"),
):
    """Get a signed URL for a file that expires after ``expires_in`` seconds."""
    expires_at = int(time.time() * 1000) + expires_in * 1000
    url = await storage.temporary_url(path, expires_at)
    return UrlResponse(path=path, url=url, expires_at=expires_at)


@router.put("/files/{path:path}", status_code=201, response_model=StatEntryResponse)
async def upload_file(
    path: str,
    storage: Storage,
    settings: AppSettings,
    file: UploadFile = File(..., description="File content"),
    visibility: Visibility | None = Form(default=None),
):
    """
    Upload a file, replacing any existing one.

    The MIME type is sniffed from the content unless the client sent a
    specific one.
    """
    if not normalize_path(path):
        raise ValidationException("File path must not be empty", details={"path": path})

    if file.size is not None and file.size > settings.MAX_UPLOAD_SIZE:
        raise PayloadTooLargeException(settings.MAX_UPLOAD_SIZE)

    mime_type = file.content_type
    if mime_type == GENERIC_MIME_TYPE:
        mime_type = None

    await storage.write(
        path,
        _upload_chunks(file),
        visibility=visibility,
        mime_type=mime_type,
        size=file.size,
    )

    return StatEntryResponse.from_entry(await storage.stat(path))


@router.get("/files/{path:path}")
async def download_file(path: str, storage: Storage):
    """Download a file as a streaming response."""
    return await _stream_file(storage, path)


@router.delete("/files/{path:path}", status_code=204)
async def delete_file(path: str, storage: Storage):
    """Delete a file. Deleting a missing file is not an error."""
    await storage.delete_file(path)
    return Response(status_code=204)


@router.post("/directories/{path:path}", status_code=201, response_model=StatEntryResponse)
async def create_directory(
    path: str,
    storage: Storage,
    visibility: Visibility | None = Query(default=None),
):
    await storage.create_directory(path, visibility=visibility)
    return StatEntryResponse.from_entry(await storage.stat(path))


@router.delete("/directories/{path:path}", status_code=204)
async def delete_directory(path: str, storage: Storage):
    """Delete a directory and everything beneath it."""
    await storage.delete_directory(path)
    return Response(status_code=204)


@router.get("/public/{path:path}")
async def serve_public_file(path: str, storage: Storage):
    """Serve a file only if its visibility is public."""
    if not await storage.file_exists(path):
        raise FileNotFoundException(path)

    if await storage.visibility(path) != Visibility.PUBLIC:
        raise ForbiddenException("File is not public", details={"path": path})

    return await _stream_file(storage, path)


@router.get("/temporary/{path:path}")
async def serve_temporary_file(path: str, storage: Storage, token: str = Query(...)):
    """Serve a file through a signed local-storage URL."""
    adapter = storage.adapter

    if not isinstance(adapter, LocalStorageAdapter) or not adapter.verify_temporary_token(path, token):
        raise ForbiddenException("Invalid or expired token", details={"path": path})

    return await _stream_file(storage, path)
