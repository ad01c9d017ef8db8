"""
File schemas.

Pydantic models for uploaded file metadata.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from moddocs.modules.mods.models import StorageDriver


class FileResponse(BaseModel):
    """Stored file metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mod_id: UUID
    page_id: Optional[UUID] = None
    original_name: str
    filename: str
    path: str
    mime_type: str
    size: int = Field(..., description="File size in bytes")
    human_size: str
    is_image: bool
    is_document: bool
    storage_driver: StorageDriver
    url: str
    uploaded_by: Optional[UUID] = None
    created_at: datetime


class FileListResponse(BaseModel):
    """Paginated file list, newest first."""

    files: List[FileResponse]
    total: int
    page: int
    per_page: int
    pages: int


class FileUploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully!"
    file: FileResponse


class PageFilesResponse(BaseModel):
    files: List[FileResponse]
