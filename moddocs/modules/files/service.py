"""
File service.

This module provides business logic for files uploaded to a mod. Blobs
go to the mod's storage driver; metadata is kept in the ``files`` table.
"""
import mimetypes
from pathlib import PurePath
from typing import Collection, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.config import get_settings
from moddocs.core.exceptions import (
    ExternalServiceException,
    ResourceNotFoundException,
    ValidationException,
)
from moddocs.core.metrics import record_storage_operation
from moddocs.modules.auth.models import User
from moddocs.modules.mods.models import Mod, StorageDriver
from moddocs.modules.pages.models import Page

from .drivers import BaseStorageDriver, StorageError, StorageObjectNotFound, get_storage_driver
from .models import StoredFile

logger = get_logger(__name__)

PER_PAGE = 20
DEFAULT_MIME_TYPE = "application/octet-stream"
MAX_NAME_LENGTH = 255
MAX_EXTENSION_LENGTH = 16


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared and declared != DEFAULT_MIME_TYPE:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or declared or DEFAULT_MIME_TYPE


def storage_filename(original_name: str) -> str:
    """``<uuid>.<ext>``, keeping the uploaded extension."""
    extension = PurePath(original_name).suffix.lower()
    if len(extension) > MAX_EXTENSION_LENGTH:
        extension = ""
    return f"{uuid4()}{extension}"


class FileService:
    """Service class for the files of a single mod."""

    def __init__(self, db: AsyncSession, mod: Mod, driver: Optional[BaseStorageDriver] = None):
        self.db = db
        self.mod = mod
        self.driver = driver or get_storage_driver(mod.storage_driver)
        self.settings = get_settings()

    def _driver_for(self, stored: StoredFile) -> BaseStorageDriver:
        """Files stay on the driver they were uploaded to even if the mod switches."""
        if StorageDriver(stored.storage_driver).value == self.driver.name:
            return self.driver
        return get_storage_driver(stored.storage_driver)

    def _live(self):
        return select(StoredFile).where(
            StoredFile.mod_id == self.mod.id,
            StoredFile.is_deleted.is_(False),
        )

    async def _check_page(self, page_id: UUID) -> None:
        result = await self.db.execute(
            select(Page.id).where(
                Page.id == page_id,
                Page.mod_id == self.mod.id,
                Page.is_deleted.is_(False),
            )
        )
        if result.first() is None:
            raise ValidationException.for_field("page_id", "Page must belong to the same mod.")

    async def upload(
        self,
        *,
        original_name: str,
        data: bytes,
        user: User,
        content_type: Optional[str] = None,
        page_id: Optional[UUID] = None,
        allowed_types: Optional[Collection[str]] = None,
    ) -> StoredFile:
        """
        Store an uploaded file and record its metadata.

        Args:
            original_name: Client filename
            data: File contents
            user: Uploading user
            content_type: MIME type declared by the client
            page_id: Optional page to attach the file to
            allowed_types: Restrict uploads to these MIME types

        Raises:
            ValidationException: If the name is too long, the file too large
                or of a disallowed type, or if ``page_id`` is not a page of this mod
            ExternalServiceException: If the storage backend fails
        """
        if len(original_name) > MAX_NAME_LENGTH:
            raise ValidationException.for_field(
                "file", f"Filename must be at most {MAX_NAME_LENGTH} characters."
            )

        max_size = self.settings.storage_max_file_size
        if len(data) > max_size:
            raise ValidationException.for_field(
                "file", f"File exceeds the maximum size of {max_size // (1024 * 1024)} MB."
            )

        mime_type = guess_mime_type(original_name, content_type)
        if allowed_types is not None and mime_type not in allowed_types:
            raise ValidationException.for_field("file", "File type not allowed.")

        if page_id is not None:
            await self._check_page(page_id)

        filename = storage_filename(original_name)
        path = f"mods/{self.mod.id}/files/{filename}"

        try:
            await self.driver.put(path, data, mime_type)
        except StorageError as e:
            record_storage_operation(self.driver.name, "upload", success=False)
            raise ExternalServiceException("Storage", str(e)) from e
        record_storage_operation(self.driver.name, "upload", bytes_transferred=len(data))

        stored = StoredFile(
            mod_id=self.mod.id,
            page_id=page_id,
            original_name=original_name,
            filename=filename,
            path=path,
            mime_type=mime_type,
            size=len(data),
            storage_driver=self.driver.name,
            url=self.driver.url(path),
            uploaded_by=user.id,
        )
        self.db.add(stored)
        await self.db.commit()
        await self.db.refresh(stored)

        logger.info(
            "File uploaded",
            mod_id=str(self.mod.id),
            file_id=str(stored.id),
            size=stored.size,
            driver=stored.storage_driver,
        )
        return stored

    async def list_files(self, page: int = 1, per_page: int = PER_PAGE) -> Tuple[List[StoredFile], int]:
        """Newest first, ``per_page`` at a time."""
        total = await self.db.scalar(
            select(func.count(StoredFile.id)).where(
                StoredFile.mod_id == self.mod.id,
                StoredFile.is_deleted.is_(False),
            )
        )
        result = await self.db.execute(
            self._live()
            .order_by(StoredFile.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(result.scalars().all()), total or 0

    async def get_file(self, file_id: UUID) -> StoredFile:
        """
        Raises:
            ResourceNotFoundException: If the file is missing or belongs to another mod
        """
        result = await self.db.execute(self._live().where(StoredFile.id == file_id))
        stored = result.scalar_one_or_none()
        if stored is None:
            raise ResourceNotFoundException("File", file_id)
        return stored

    async def read(self, stored: StoredFile) -> bytes:
        driver = self._driver_for(stored)
        try:
            data = await driver.get(stored.path)
        except StorageObjectNotFound as e:
            record_storage_operation(driver.name, "download", success=False)
            raise ResourceNotFoundException("File", stored.id) from e
        except StorageError as e:
            record_storage_operation(driver.name, "download", success=False)
            raise ExternalServiceException("Storage", str(e)) from e

        record_storage_operation(driver.name, "download", bytes_transferred=len(data))
        return data

    async def delete_file(self, stored: StoredFile) -> None:
        """Remove the blob, then soft delete the record."""
        driver = self._driver_for(stored)
        try:
            await driver.delete(stored.path)
        except StorageError as e:
            record_storage_operation(driver.name, "delete", success=False)
            raise ExternalServiceException("Storage", str(e)) from e
        record_storage_operation(driver.name, "delete")

        stored.soft_delete()
        await self.db.commit()

        logger.info("File deleted", mod_id=str(self.mod.id), file_id=str(stored.id))

    async def get_page_files(self, page: Page) -> List[StoredFile]:
        result = await self.db.execute(
            self._live()
            .where(StoredFile.page_id == page.id)
            .order_by(StoredFile.created_at.desc())
        )
        return list(result.scalars().all())
