"""
Mod schemas.

This module defines Pydantic models for mod, collaborator and invitation
requests and responses.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from moddocs.core.rbac import ModRole, Visibility
from moddocs.modules.auth.schemas import UserSummary
from moddocs.modules.pages.schemas import NavigationNode, PageChild, PageResponse, PageSummary

from .models import InvitationStatus, StorageDriver


def _strip_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Name cannot be blank")
    return v


class ModCreate(BaseModel):
    """Schema for mod creation."""

    name: str = Field(..., min_length=1, max_length=255, description="Mod name")
    description: Optional[str] = Field(None, description="Mod description")
    visibility: Visibility = Field(default=Visibility.PRIVATE, description="public, private or unlisted")
    storage_driver: StorageDriver = Field(default=StorageDriver.LOCAL, description="local or s3")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _strip_name(v)


class ModUpdate(BaseModel):
    """Schema for mod updates; the slug never changes."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: Optional[Visibility] = None
    storage_driver: Optional[StorageDriver] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _strip_name(v)


class ModResponse(BaseModel):
    """Schema for mod response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    owner_id: UUID
    visibility: Visibility
    storage_driver: StorageDriver
    created_at: datetime
    updated_at: datetime


class ModListItem(ModResponse):
    """Mod with aggregate counts for listings."""

    pages_count: int = 0
    collaborators_count: int = 0
    role: Optional[ModRole] = None


class ModListResponse(BaseModel):
    owned: List[ModListItem]
    collaborative: List[ModListItem]


class DashboardPage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    mod_id: UUID
    mod_slug: str
    mod_name: str
    updated_at: datetime


class DashboardResponse(BaseModel):
    owned_mods: int
    collaborative_mods: int
    total_pages: int
    recent_pages: List[DashboardPage]
    recent_mods: List[ModResponse]


class CollaboratorCreate(BaseModel):
    """Add a collaborator by username or email."""

    username: str = Field(..., min_length=1, max_length=255, description="Username or email")
    role: ModRole = Field(..., description="admin, editor or viewer")

    @field_validator("username")
    @classmethod
    def normalize_identifier(cls, v: str) -> str:
        return v.strip().lower()


class CollaboratorUpdate(BaseModel):
    role: ModRole


class CollaboratorResponse(BaseModel):
    """Owner or member as listed on the collaborators screen."""

    user: UserSummary
    email: str
    role: ModRole
    invited_by: Optional[UUID] = None
    joined_at: Optional[datetime] = None


class CollaboratorListResponse(BaseModel):
    owner: CollaboratorResponse
    collaborators: List[CollaboratorResponse]
    can_grant_admin: bool


class CollaboratorAddResponse(BaseModel):
    message: str
    collaborator: CollaboratorResponse
    email_sent: bool


class InvitationResponse(BaseModel):
    """Public view of an invitation token."""

    mod: ModResponse
    invited_user: UserSummary
    inviter: Optional[UserSummary] = None
    role: ModRole
    status: InvitationStatus
    expires_at: datetime
    accepted_at: Optional[datetime] = None


class InvitationAcceptResponse(BaseModel):
    message: str
    mod_slug: str
    role: ModRole
    already_accepted: bool


class MessageResponse(BaseModel):
    message: str


class ModDetailResponse(BaseModel):
    """A mod as seen by the caller, with its navigation."""

    mod: ModResponse
    role: Optional[ModRole] = None
    can_edit: bool
    can_manage: bool
    navigation: List[NavigationNode]
    index_page: Optional[PageSummary] = None


class PublicModListResponse(BaseModel):
    mods: List[ModResponse]


class PublicModResponse(BaseModel):
    """Published documentation landing view."""

    mod: ModResponse
    navigation: List[NavigationNode]
    index_page: Optional[PageResponse] = None


class PublicPageResponse(BaseModel):
    mod: ModResponse
    page: PageResponse
    children: List[PageChild]
    navigation: List[NavigationNode]
