"""
Authentication models.

This module defines the database models for user authentication.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from moddocs.core.models import BaseModel, utcnow


class User(BaseModel):
    """Registered account that can own mods and collaborate on others."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
        comment="User's email address (unique)"
    )

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
        comment="User's username (unique)"
    )

    full_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="User's full name"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Hashed password"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Whether the user account is active"
    )

    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last login timestamp"
    )

    @property
    def display_name(self) -> str:
        """Name shown to collaborators and in emails."""
        return self.full_name or self.username

    def set_last_login(self) -> None:
        self.last_login = utcnow()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
