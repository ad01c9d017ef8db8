"""
Mod models.

A mod is a documentation workspace: it owns pages and files and grants
collaborators a role through a membership row.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moddocs.core.models import BaseModel, BaseModelWithSoftDelete, as_utc, utcnow
from moddocs.core.rbac import ModRole, Visibility


class StorageDriver(str, Enum):
    """Backend that stores a mod's uploaded files."""
    LOCAL = "local"
    S3 = "s3"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Mod(BaseModelWithSoftDelete):
    """Documentation workspace owned by a single user."""

    __tablename__ = "mods"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Mod name"
    )

    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        comment="Globally unique URL slug, fixed at creation"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Mod description"
    )

    owner_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the mod owner"
    )

    visibility: Mapped[Visibility] = mapped_column(
        String(20),
        default=Visibility.PRIVATE,
        nullable=False,
        comment="public, private or unlisted"
    )

    storage_driver: Mapped[StorageDriver] = mapped_column(
        String(20),
        default=StorageDriver.LOCAL,
        nullable=False,
        comment="Storage backend for uploaded files"
    )

    owner = relationship("User", foreign_keys=[owner_id])

    def is_owned_by(self, user_id: Optional[UUID]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def __repr__(self) -> str:
        return f"<Mod(id={self.id}, slug='{self.slug}', owner_id={self.owner_id})>"


class ModMember(BaseModel):
    """Collaborator membership of a user on a mod."""

    __tablename__ = "mod_members"

    mod_id: Mapped[UUID] = mapped_column(
        ForeignKey("mods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the mod"
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the collaborator"
    )

    role: Mapped[ModRole] = mapped_column(
        String(20),
        default=ModRole.VIEWER,
        nullable=False,
        comment="admin, editor or viewer"
    )

    invited_by: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="ID of the user who added the collaborator"
    )

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("mod_id", "user_id", name="uq_mod_member"),
    )

    def __repr__(self) -> str:
        return f"<ModMember(mod_id={self.mod_id}, user_id={self.user_id}, role='{self.role}')>"


class ModInvitation(BaseModel):
    """Tokenized invitation sent to a collaborator by email."""

    __tablename__ = "mod_invitations"

    mod_id: Mapped[UUID] = mapped_column(
        ForeignKey("mods.id", ondelete="CASCADE"),
        nullable=False,
        comment="ID of the mod"
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="ID of the invited user"
    )

    invited_by: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="ID of the inviting user"
    )

    role: Mapped[ModRole] = mapped_column(
        String(20),
        nullable=False,
        comment="Role granted on acceptance"
    )

    token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        nullable=False,
        comment="Opaque token embedded in the accept URL"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Invitation expiry"
    )

    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the invitation was accepted"
    )

    mod = relationship("Mod", foreign_keys=[mod_id])
    user = relationship("User", foreign_keys=[user_id])
    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        UniqueConstraint("mod_id", "user_id", name="uq_mod_invitation"),
    )

    @staticmethod
    def expiry_from_now(days: int) -> datetime:
        return utcnow() + timedelta(days=days)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expires_at) <= (now or utcnow())

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    @property
    def status(self) -> InvitationStatus:
        """Accepted wins over expired: an accepted invitation stays accepted."""
        if self.is_accepted:
            return InvitationStatus.ACCEPTED
        if self.is_expired():
            return InvitationStatus.EXPIRED
        return InvitationStatus.PENDING

    def __repr__(self) -> str:
        return f"<ModInvitation(mod_id={self.mod_id}, user_id={self.user_id}, role='{self.role}')>"
