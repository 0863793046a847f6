"""Attachment upload and download endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from messaging_backend.core.settings import settings
from messaging_backend.schemas.file import FileUploadResponse
from messaging_backend.services.file_store import FileStore, get_file_store

from ..dependencies import CurrentUserDep

router = APIRouter(prefix="/files", tags=["files"])

FileStoreDep = Annotated[FileStore, Depends(get_file_store)]


def _file_response(store: FileStore, path: Path, filename: str, cache: bool = True) -> FileResponse:
    headers = {"Content-Disposition": f'inline; filename="{filename}"'}
    if cache:
        headers["Cache-Control"] = f"max-age={settings.media_cache_seconds}"
    return FileResponse(path, media_type=store.content_type_for(path), headers=headers)


@router.post("/upload", response_model=FileUploadResponse)
async def upload_file(
    current_user: CurrentUserDep,
    store: FileStoreDep,
    file: Annotated[UploadFile, File(description="Attachment body")],
    type: Annotated[str, Form(description="IMAGE, VIDEO, AUDIO, VOICE or FILE")],
) -> FileUploadResponse:
    """Store an attachment in the bucket for its category."""
    stored = store.save(
        file.file,
        category=type,
        username=current_user.username,
        original_name=file.filename,
        content_type=file.content_type,
        declared_size=file.size,
    )
    return FileUploadResponse(
        filename=stored.filename,
        original_name=stored.original_name,
        url=stored.url,
        size=stored.size,
        type=stored.content_type,
        uploaded_by=current_user.id,
        username=current_user.username,
        uploaded_at=stored.uploaded_at,
    )


@router.get("/{folder}/{filename}")
async def download_file(folder: str, filename: str, store: FileStoreDep) -> FileResponse:
    """Serve a stored attachment."""
    path = store.resolve(folder, filename)
    return _file_response(store, path, filename)


@router.get("/{filename}")
async def download_legacy_file(filename: str, store: FileStoreDep) -> FileResponse:
    """Serve an attachment addressed by bare name, as older clients do."""
    path = store.resolve_legacy(filename)
    return _file_response(store, path, filename, cache=path.parent != store.root.resolve())
