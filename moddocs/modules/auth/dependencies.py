"""
Authentication dependencies.

This module provides FastAPI dependencies that resolve the calling user
from a bearer token.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.database import get_db_session
from moddocs.core.exceptions import AuthenticationException
from moddocs.core.security import TokenError, decode_token
from moddocs.modules.auth.models import User
from moddocs.modules.auth.service import AuthService

logger = get_logger(__name__)

# auto_error is off so anonymous callers reach the public endpoints
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login", auto_error=False)


async def _resolve_user(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_token(token)
    except TokenError as e:
        logger.info("Rejected bearer token", reason=str(e))
        raise AuthenticationException("Could not validate credentials") from e

    user = await AuthService(db).get_user_by_id(payload.get("sub", ""))
    if user is None or not user.is_active:
        logger.warning("Token subject is unknown or inactive", subject=payload.get("sub"))
        raise AuthenticationException("Could not validate credentials")

    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises:
        AuthenticationException: If the token is missing, invalid or
            belongs to an unknown or inactive user
    """
    if not token:
        raise AuthenticationException()
    return await _resolve_user(token, db)


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Like ``get_current_user`` but anonymous callers resolve to ``None``."""
    if not token:
        return None
    return await _resolve_user(token, db)
