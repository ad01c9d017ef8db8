"""
File models.

This module defines the database model for files uploaded to a mod.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from moddocs.core.models import BaseModelWithSoftDelete
from moddocs.modules.mods.models import StorageDriver

DOCUMENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def human_readable_size(size: int) -> str:
    """
    Format a byte count with binary units and two decimals.

    >>> human_readable_size(1536)
    '1.5 KB'
    """
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {SIZE_UNITS[unit]}"


class StoredFile(BaseModelWithSoftDelete):
    """Metadata for a blob kept on the mod's storage driver."""

    __tablename__ = "files"

    mod_id: Mapped[UUID] = mapped_column(
        ForeignKey("mods.id", ondelete="CASCADE"),
        nullable=False,
        comment="ID of the owning mod"
    )

    page_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("pages.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Page the file is attached to"
    )

    original_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Filename as uploaded"
    )

    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Generated storage filename"
    )

    path: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Object key on the storage driver"
    )

    mime_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="MIME type"
    )

    size: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Size in bytes"
    )

    storage_driver: Mapped[StorageDriver] = mapped_column(
        String(20),
        nullable=False,
        comment="Driver holding the blob"
    )

    url: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        comment="Resolved public URL"
    )

    uploaded_by: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="ID of the uploading user"
    )

    __table_args__ = (
        Index("ix_files_mod_created", "mod_id", "created_at"),
    )

    @property
    def human_size(self) -> str:
        return human_readable_size(self.size)

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_document(self) -> bool:
        return self.mime_type in DOCUMENT_TYPES

    def __repr__(self) -> str:
        return f"<StoredFile(id={self.id}, mod_id={self.mod_id}, path='{self.path}')>"
