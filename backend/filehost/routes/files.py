"""Files API routes."""
import asyncio
import logging
from datetime import timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import aiofiles
import aiofiles.os
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from filehost.config import Settings
from filehost.dependencies import get_file_store, get_settings
from filehost.exceptions import (
    InvalidCredentialError,
    RecordNotFoundError,
    StorageIOError,
    UploadTooLargeError,
    UploadValidationError,
)
from filehost.models.file_record import FileRecord, FileStats
from filehost.schemas.file import SuccessResponse, UploadResponse
from filehost.services.file_helpers import MEDIA_TYPES, get_file_type
from filehost.services.file_store import FileStore
from filehost.services.metadata import extract_metadata
from filehost.services.thumbnails import generate_thumbnail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["files"])

_CHUNK_SIZE = 1024 * 1024


async def _get_record(store: FileStore, file_id: str) -> FileRecord:
    record = await store.get(file_id)
    if record is None:
        raise RecordNotFoundError("File not found")
    return record


async def _get_blob(store: FileStore, record: FileRecord) -> Path:
    blob_path = store.blob_path(record.id)
    if not await aiofiles.os.path.isfile(blob_path):
        logger.warning("Blob missing on disk for file %s", record.id)
        raise RecordNotFoundError("File not found on disk")
    return blob_path


async def _receive_upload(upload: UploadFile, dest: Path, limit_bytes: int) -> int:
    """Stream an upload to `dest`. Returns the byte count."""
    size = 0
    try:
        async with aiofiles.open(dest, "wb") as out:
            while chunk := await upload.read(_CHUNK_SIZE):
                size += len(chunk)
                if size > limit_bytes:
                    raise UploadTooLargeError(limit_bytes)
                await out.write(chunk)
    except OSError as e:
        logger.exception("Failed to write upload to %s", dest)
        raise StorageIOError("Failed to write uploaded file") from e
    return size


@router.get("/files", response_model=list[FileRecord], response_model_exclude_none=True)
async def list_files(store: FileStore = Depends(get_file_store)):
    """List all files, newest first."""
    return await store.list()


@router.get("/stats", response_model=FileStats)
async def get_stats(store: FileStore = Depends(get_file_store)):
    """Aggregate file count, downloads and bytes stored."""
    return await store.stats()


@router.get("/files/{file_id}")
async def view_file(file_id: str, store: FileStore = Depends(get_file_store)):
    """Stream a file inline. Counts a view."""
    record = await _get_record(store, file_id)
    blob_path = await _get_blob(store, record)
    await store.increment_views(file_id)
    return FileResponse(
        blob_path,
        media_type=record.mime_type,
        filename=record.original_name,
        content_disposition_type="inline",
    )


@router.get("/files/{file_id}/thumbnail")
async def get_thumbnail(file_id: str, store: FileStore = Depends(get_file_store)):
    """Serve the thumbnail, generating it on first request for images and videos."""
    record = await _get_record(store, file_id)
    thumb_path = store.thumbnail_path(file_id)

    if not await aiofiles.os.path.isfile(thumb_path):
        file_type = get_file_type(record.original_name)
        if file_type not in MEDIA_TYPES:
            raise RecordNotFoundError("Thumbnail not available")
        blob_path = await _get_blob(store, record)
        if not await generate_thumbnail(blob_path, thumb_path, file_type):
            raise RecordNotFoundError("Thumbnail not available")

    return FileResponse(thumb_path, media_type=record.mime_type)


@router.get("/files/{file_id}/metadata", response_model=FileRecord, response_model_exclude_none=True)
async def get_file_metadata(file_id: str, store: FileStore = Depends(get_file_store)):
    """Full record for one file."""
    return await _get_record(store, file_id)


@router.get("/download/{file_id}")
async def download_file(file_id: str, store: FileStore = Depends(get_file_store)):
    """Stream a file as an attachment. Counts a download."""
    record = await _get_record(store, file_id)
    blob_path = await _get_blob(store, record)
    await store.increment_downloads(file_id)

    headers = {
        "Cache-Control": "public, max-age=31536000",
        "Last-Modified": format_datetime(record.uploaded_at.astimezone(timezone.utc), usegmt=True),
        "X-File-Name": quote(record.original_name),
        "X-File-Size": str(record.size),
        "X-File-Type": record.mime_type,
    }
    return FileResponse(
        blob_path,
        media_type=record.mime_type,
        filename=record.original_name,
        headers=headers,
    )


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    upload_key: Optional[str] = Form(None, alias="uploadKey"),
    store: FileStore = Depends(get_file_store),
    settings: Settings = Depends(get_settings),
):
    """Upload a file. Requires the shared upload key."""
    if not settings.UPLOAD_KEY:
        if file is not None:
            await file.close()
        raise InvalidCredentialError("Uploads are disabled: no upload key configured")

    if upload_key != settings.UPLOAD_KEY:
        if file is not None:
            await file.close()
        logger.warning("Rejected upload with invalid key")
        raise InvalidCredentialError("Invalid upload key")

    if file is None or not file.filename:
        raise UploadValidationError("No file uploaded")

    store.ensure_storage_layout()
    temp_path = store.incoming_path()
    file_type = get_file_type(file.filename)
    try:
        size = await _receive_upload(file, temp_path, settings.MAX_UPLOAD_BYTES)
        if size == 0:
            raise UploadValidationError("Uploaded file is empty")

        metadata = await extract_metadata(temp_path, file_type, original_name=file.filename)
        record = await store.create(
            original_name=file.filename,
            mime_type=file.content_type or "application/octet-stream",
            size=size,
            metadata=metadata,
            blob_source=temp_path,
        )
    except (Exception, asyncio.CancelledError):
        # Nothing was indexed; drop whatever part of the body reached disk
        await store.discard_incoming(temp_path)
        raise
    finally:
        await file.close()

    if file_type in MEDIA_TYPES:
        await generate_thumbnail(store.blob_path(record.id), store.thumbnail_path(record.id), file_type)

    return UploadResponse(
        file_id=record.id,
        file_name=record.stored_name,
        original_name=record.original_name,
        file_size=record.size,
        url=f"/api/files/{record.id}",
        download_url=f"/api/download/{record.id}",
    )


@router.delete("/files/{file_id}", response_model=SuccessResponse)
async def delete_file(file_id: str, store: FileStore = Depends(get_file_store)):
    """Delete a file, its thumbnail and its record."""
    if not await store.delete(file_id):
        raise RecordNotFoundError("File not found")
    return SuccessResponse()
