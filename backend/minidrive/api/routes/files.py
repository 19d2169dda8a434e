"""File API routes. Every key is built from the caller's verified user id."""

from __future__ import annotations

import io
import logging
import os
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from minidrive.api.deps import get_app_settings, get_current_identity, get_object_store
from minidrive.config import Settings
from minidrive.exceptions import MiniDriveError
from minidrive.schemas.files import (
    DeleteResponse,
    FileInfoResponse,
    FileItem,
    FolderItem,
    ListingStatistics,
    ListResponse,
    MkdirResponse,
    MultiUploadResponse,
    UploadResponse,
)
from minidrive.services.namespace import DirectoryListing, list_directory
from minidrive.services.object_store import ObjectStore
from minidrive.services.token_service import Identity
from minidrive.utils.keys import build_key, folder_marker_key, join_paths, normalize_path, split_relative

logger = logging.getLogger(__name__)
router = APIRouter()


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _check_size(size: int, limit: int) -> None:
    # Chunked requests carry no Content-Length and slip past the middleware
    if size > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload exceeds limit of {limit} bytes",
        )


def _content_disposition(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def _to_response(listing: DirectoryListing) -> ListResponse:
    stats = listing.statistics
    return ListResponse(
        path=listing.path,
        user_id=listing.user_id,
        files=[
            FileItem(
                name=f.name,
                size=f.size,
                last_modified=f.last_modified,
                content_type=f.content_type,
            )
            for f in listing.files
        ],
        folders=[
            FolderItem(name=f.name, item_count=f.item_count, last_modified=f.last_modified)
            for f in listing.folders
        ],
        statistics=ListingStatistics(
            total_files=stats.total_files,
            total_folders=stats.total_folders,
            total_size=stats.total_size,
            total_size_human=stats.total_size_human,
            latest_modified=stats.latest_modified,
        ),
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    path: str = Form(""),
    filename: Optional[str] = Form(None),
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_app_settings),
):
    """Store one file at ``path/filename`` in the caller's namespace."""
    name = filename or file.filename
    key = build_key(identity.user_id, path, name)
    size = _upload_size(file)
    _check_size(size, settings.max_upload_bytes)

    await run_in_threadpool(store.put, key, file.file, size, file.content_type)
    logger.info("Uploaded %s (%d bytes)", key, size)
    return UploadResponse(key=key, path=normalize_path(path), filename=name, size=size)


async def _upload_many(
    files: list[UploadFile],
    identity: Identity,
    store: ObjectStore,
    base_path: str,
    keep_relative_paths: bool,
    limit: int,
) -> MultiUploadResponse:
    uploaded: list[str] = []
    errors: list[str] = []

    total = sum(_upload_size(f) for f in files)
    _check_size(total, limit)

    for upload in files:
        name = upload.filename or ""
        try:
            if keep_relative_paths:
                subdir, filename = split_relative(name)
                key = build_key(identity.user_id, join_paths(base_path, subdir), filename)
            else:
                key = build_key(identity.user_id, base_path, name)
            await run_in_threadpool(store.put, key, upload.file, _upload_size(upload), upload.content_type)
        except MiniDriveError as exc:
            errors.append(f"Failed to save {name}: {exc.detail}")
            continue
        uploaded.append(key)

    logger.info("Batch upload by %s: %d ok, %d failed", identity.user_id, len(uploaded), len(errors))
    return MultiUploadResponse(
        uploaded=uploaded,
        errors=errors,
        total=len(files),
        success=len(uploaded),
        failed=len(errors),
    )


@router.post("/upload-multiple", response_model=MultiUploadResponse)
async def upload_multiple(
    files: list[UploadFile] = File(...),
    path: str = Form(""),
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_app_settings),
):
    """Upload several files into one folder; failures are reported per file."""
    normalize_path(path)
    return await _upload_many(files, identity, store, path, False, settings.max_upload_bytes)


@router.post("/upload-folder", response_model=MultiUploadResponse)
async def upload_folder(
    files: list[UploadFile] = File(...),
    path: str = Form(""),
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_app_settings),
):
    """Upload a folder; each file's client-relative name keeps its subdirectories."""
    normalize_path(path)
    return await _upload_many(files, identity, store, path, True, settings.max_folder_upload_bytes)


@router.get("/download")
async def download_file(
    filename: str,
    path: str = "",
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
):
    key = build_key(identity.user_id, path, filename)
    download = await run_in_threadpool(store.get, key)
    headers = {"Content-Disposition": _content_disposition(filename)}
    if download.size is not None:
        headers["Content-Length"] = str(download.size)
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers=headers,
        # Returns the store connection once the response is finished
        background=BackgroundTask(download.release),
    )


@router.get("/info", response_model=FileInfoResponse)
async def file_info(
    filename: str,
    path: str = "",
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Detailed object metadata (etag, version, user metadata)."""
    key = build_key(identity.user_id, path, filename)
    stat = await run_in_threadpool(store.stat, key)
    return FileInfoResponse(
        name=filename,
        size=stat.size,
        last_modified=stat.last_modified,
        content_type=stat.content_type,
        etag=stat.etag,
        version_id=stat.version_id,
        is_delete_marker=stat.is_delete_marker,
        storage_class=stat.storage_class,
        metadata=stat.metadata,
    )


@router.delete("/delete", response_model=DeleteResponse)
async def delete_file(
    filename: str,
    path: str = "",
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
):
    key = build_key(identity.user_id, path, filename)
    await run_in_threadpool(store.stat, key)
    await run_in_threadpool(store.delete, key)
    logger.info("Deleted %s", key)
    return DeleteResponse(deleted=key)


@router.post("/mkdir", response_model=MkdirResponse)
async def make_directory(
    path: str,
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Create an empty folder by writing its ``.keep`` marker."""
    key = folder_marker_key(identity.user_id, path)
    await run_in_threadpool(store.put, key, io.BytesIO(b""), 0, None)
    logger.info("Created folder marker %s", key)
    return MkdirResponse(created=key, path=normalize_path(path))


@router.get("/list", response_model=ListResponse)
async def list_files(
    path: str = "",
    identity: Identity = Depends(get_current_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Immediate files and folders of ``path``."""
    listing = await run_in_threadpool(list_directory, store, identity.user_id, path)
    return _to_response(listing)
