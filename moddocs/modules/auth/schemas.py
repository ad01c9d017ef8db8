"""
Authentication schemas.

This module defines Pydantic models for authentication requests and responses.
"""
import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,50}$")


class UserBase(BaseModel):
    """Base user schema with common fields."""

    email: EmailStr = Field(..., description="User's email address")
    username: str = Field(..., min_length=3, max_length=50, description="Username")
    full_name: Optional[str] = Field(None, max_length=255, description="Full name")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are case-insensitive: letters, digits, '-' and '_'."""
        v = v.strip().lower()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username may only contain letters, numbers, hyphens and underscores")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserCreate(UserBase):
    """Schema for user registration."""

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)"
    )


class UserResponse(BaseModel):
    """Schema for user response (excludes sensitive data)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    full_name: Optional[str] = None
    display_name: str
    is_active: bool
    created_at: datetime


class UserSummary(BaseModel):
    """Compact user representation embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    display_name: str


class Token(BaseModel):
    """Schema for token response."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")


class LoginResponse(BaseModel):
    """Schema for login response."""

    user: UserResponse
    token: Token
