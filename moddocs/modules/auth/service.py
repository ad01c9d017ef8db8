"""
Authentication service.

This module provides business logic for user registration and login.
"""
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.config import get_settings
from moddocs.core.exceptions import ConflictException
from moddocs.core.metrics import record_auth_attempt
from moddocs.core.security import (
    create_access_token,
    generate_password_hash,
    verify_password,
)
from moddocs.modules.auth.models import User
from moddocs.modules.auth.schemas import Token, UserCreate

logger = get_logger(__name__)
settings = get_settings()


class AuthService:
    """Service class for authentication operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: Union[str, UUID]) -> Optional[User]:
        """Get user by ID; malformed ids simply match nothing."""
        try:
            uuid_id = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            logger.warning("Malformed user id", user_id=user_id)
            return None

        result = await self.db.execute(select(User).where(User.id == uuid_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.username == username.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_username_or_email(self, identifier: str) -> Optional[User]:
        """
        Get user by username or email.

        Args:
            identifier: Username or email, matched case-insensitively

        Returns:
            User if found, None otherwise
        """
        identifier = identifier.strip().lower()
        result = await self.db.execute(
            select(User).where(
                or_(User.username == identifier, User.email == identifier)
            )
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: UserCreate) -> User:
        """
        Create a new user.

        Raises:
            ConflictException: If the email or username is already taken
        """
        if await self.get_user_by_email(user_data.email):
            raise ConflictException(
                "User with this email already exists", details={"field": "email"}
            )

        if await self.get_user_by_username(user_data.username):
            raise ConflictException(
                "User with this username already exists", details={"field": "username"}
            )

        user = User(
            email=user_data.email.lower(),
            username=user_data.username.lower(),
            full_name=user_data.full_name,
            hashed_password=generate_password_hash(user_data.password),
            is_active=True,
        )

        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("User created", user_id=str(user.id), username=user.username)
        return user

    async def authenticate_user(self, identifier: str, password: str) -> Optional[User]:
        """
        Authenticate user with username/email and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = await self.get_user_by_username_or_email(identifier)

        if not user or not user.is_active:
            logger.warning("Authentication failed: unknown or inactive user", identifier=identifier)
            record_auth_attempt(success=False)
            return None

        if not verify_password(password, user.hashed_password):
            logger.warning("Authentication failed: invalid password", user_id=str(user.id))
            record_auth_attempt(success=False)
            return None

        user.set_last_login()
        await self.db.commit()

        record_auth_attempt(success=True)
        logger.info("User authenticated successfully", user_id=str(user.id))
        return user

    @staticmethod
    def create_token(user: User) -> Token:
        """Issue an access token for ``user``."""
        return Token(
            access_token=create_access_token(str(user.id)),
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60,
        )
