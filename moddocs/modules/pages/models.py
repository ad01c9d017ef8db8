"""
Page models.

Pages form a tree inside a mod through a self-referential parent link.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from moddocs.core.models import AuditMixin, BaseModelWithSoftDelete

EXCERPT_LENGTH = 200


class Page(BaseModelWithSoftDelete, AuditMixin):
    """Markdown documentation page."""

    __tablename__ = "pages"

    mod_id: Mapped[UUID] = mapped_column(
        ForeignKey("mods.id", ondelete="CASCADE"),
        nullable=False,
        comment="ID of the owning mod"
    )

    parent_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=True,
        comment="Parent page within the same mod"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Page title"
    )

    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="URL slug, unique within the mod"
    )

    content: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
        comment="Raw markdown"
    )

    order_index: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Sort position among siblings"
    )

    is_index: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Landing page of the mod (at most one)"
    )

    published: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Visible in navigation and public docs"
    )

    __table_args__ = (
        UniqueConstraint("mod_id", "slug", name="uq_page_mod_slug"),
        Index("ix_pages_mod_parent_order", "mod_id", "parent_id", "order_index"),
    )

    @property
    def excerpt(self) -> str:
        content = self.content or ""
        if len(content) <= EXCERPT_LENGTH:
            return content
        return content[:EXCERPT_LENGTH].rstrip() + "..."

    def __repr__(self) -> str:
        return f"<Page(id={self.id}, mod_id={self.mod_id}, slug='{self.slug}')>"
