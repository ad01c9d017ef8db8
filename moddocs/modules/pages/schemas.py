"""
Page schemas.

This module defines Pydantic models for page requests, responses and the
navigation structures built from the page tree.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_SEARCH_LENGTH = 2


def _strip_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Title cannot be blank")
    return v


class PageCreate(BaseModel):
    """Schema for page creation."""

    title: str = Field(..., min_length=1, max_length=255, description="Page title")
    content: str = Field(default="", description="Markdown content")
    parent_id: Optional[UUID] = Field(None, description="Parent page in the same mod")
    is_index: bool = Field(default=False, description="Make this the mod's landing page")
    published: bool = Field(default=True, description="Show in navigation and public docs")
    order_index: int = Field(default=0, ge=0, description="Sort position among siblings")
    slug: Optional[str] = Field(None, max_length=255, description="Explicit slug; derived from the title if omitted")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _strip_title(v)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Optional[str]) -> str:
        return v if v is not None else ""


class PageUpdate(BaseModel):
    """
    Schema for page updates.

    Only fields present in the request are applied. Sending
    ``"parent_id": null`` moves the page to the root.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_index: Optional[bool] = None
    published: Optional[bool] = None
    order_index: Optional[int] = Field(None, ge=0)
    slug: Optional[str] = Field(None, max_length=255)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _strip_title(v)


class PageSummary(BaseModel):
    """Lightweight page reference."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    parent_id: Optional[UUID] = None
    order_index: int = 0
    is_index: bool = False
    published: bool = True


class PageChild(BaseModel):
    """Published child page with a content excerpt."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    excerpt: str


class PageResponse(BaseModel):
    """Schema for page response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mod_id: UUID
    parent_id: Optional[UUID] = None
    title: str
    slug: str
    content: str
    order_index: int
    is_index: bool
    published: bool
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class Breadcrumb(BaseModel):
    id: UUID
    title: str
    slug: str


class NavigationNode(BaseModel):
    """Navigation entry: a published root page and its published children."""

    id: UUID
    title: str
    slug: str
    children: List["NavigationNode"] = Field(default_factory=list)


class PageTreeNode(PageSummary):
    """Page with every child nested, published or not."""

    children: List["PageTreeNode"] = Field(default_factory=list)


class PageListResponse(BaseModel):
    pages: List[PageSummary]
    tree: List[PageTreeNode]
    can_edit: bool = False


class PageDetailResponse(BaseModel):
    """A page with its breadcrumb path, children and the mod navigation."""

    page: PageResponse
    path: List[Breadcrumb]
    children: List[PageChild]
    navigation: List[NavigationNode]
    depth: int = 0
    can_edit: bool = False


class ReorderItem(BaseModel):
    id: UUID
    parent_id: Optional[UUID] = None
    order_index: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    """Drag-and-drop result: new parent and position for each page."""

    pages: List[ReorderItem]


class ReorderResponse(BaseModel):
    message: str = "Page order updated successfully!"
    updated: int
    skipped: int


class AutosaveRequest(BaseModel):
    content: str


class AutosaveResponse(BaseModel):
    success: bool = True
    updated_at: datetime


class SearchResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    updated_at: datetime


class SearchResponse(BaseModel):
    query: str
    pages: List[SearchResult]
