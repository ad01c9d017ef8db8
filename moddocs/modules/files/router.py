"""
File router.

This module provides API endpoints for uploading, listing, downloading
and deleting the files of a mod.
"""
import math
from typing import Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.config import get_settings
from moddocs.core.database import get_db_session
from moddocs.modules.mods.dependencies import ModAccess, get_mod_access, require_edit
from moddocs.modules.mods.schemas import MessageResponse
from moddocs.modules.pages.service import PageService

from .schemas import FileListResponse, FileResponse, FileUploadResponse, PageFilesResponse
from .service import PER_PAGE, FileService

logger = get_logger(__name__)

router = APIRouter(prefix="/mods/{slug}", tags=["Files"])


async def read_upload(file: UploadFile) -> bytes:
    """Read at most one byte past the limit so oversize uploads are caught without buffering them whole."""
    limit = get_settings().storage_max_file_size
    try:
        return await file.read(limit + 1)
    finally:
        await file.close()


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "ignore").decode() or "download"
    fallback = fallback.replace('"', "")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.get(
    "/files",
    response_model=FileListResponse,
    summary="List files",
)
async def list_files(
    page: int = Query(1, ge=1, description="Page number"),
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    files, total = await FileService(db, access.mod).list_files(page=page)
    return FileListResponse(
        files=[FileResponse.model_validate(f) for f in files],
        total=total,
        page=page,
        per_page=PER_PAGE,
        pages=max(1, math.ceil(total / PER_PAGE)),
    )


@router.post(
    "/files",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload file",
)
async def upload_file(
    file: UploadFile = File(...),
    page_id: Optional[UUID] = Form(None),
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    data = await read_upload(file)
    stored = await FileService(db, access.mod).upload(
        original_name=file.filename or "upload",
        data=data,
        user=access.user,
        content_type=file.content_type,
        page_id=page_id,
    )
    return FileUploadResponse(file=FileResponse.model_validate(stored))


@router.post(
    "/files/quick-upload",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Quick upload from the editor",
    description="Upload an image or document while editing; other file types are rejected.",
)
async def quick_upload(
    file: UploadFile = File(...),
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    data = await read_upload(file)
    stored = await FileService(db, access.mod).upload(
        original_name=file.filename or "upload",
        data=data,
        user=access.user,
        content_type=file.content_type,
        allowed_types=get_settings().storage_quick_upload_types,
    )
    return FileUploadResponse(file=FileResponse.model_validate(stored))


@router.get(
    "/files/{file_id}",
    response_model=FileResponse,
    summary="Get file",
)
async def get_file(
    file_id: UUID,
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    stored = await FileService(db, access.mod).get_file(file_id)
    return FileResponse.model_validate(stored)


@router.get(
    "/files/{file_id}/download",
    summary="Download file",
    response_class=Response,
)
async def download_file(
    file_id: UUID,
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    service = FileService(db, access.mod)
    stored = await service.get_file(file_id)
    data = await service.read(stored)

    return Response(
        content=data,
        media_type=stored.mime_type,
        headers={"Content-Disposition": content_disposition(stored.original_name)},
    )


@router.delete(
    "/files/{file_id}",
    response_model=MessageResponse,
    summary="Delete file",
)
async def delete_file(
    file_id: UUID,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    service = FileService(db, access.mod)
    stored = await service.get_file(file_id)
    await service.delete_file(stored)
    return MessageResponse(message="File deleted successfully!")


@router.get(
    "/pages/{page_slug}/files",
    response_model=PageFilesResponse,
    summary="Files attached to a page",
)
async def page_files(
    page_slug: str,
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    page = await PageService(db, access.mod).get_page_by_slug(page_slug)
    files = await FileService(db, access.mod).get_page_files(page)
    return PageFilesResponse(files=[FileResponse.model_validate(f) for f in files])
