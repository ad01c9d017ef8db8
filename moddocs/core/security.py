"""
Security utilities for authentication.

This module provides JWT token handling, password hashing and random
token generation.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext
from structlog import get_logger

from moddocs.core.config import get_settings

logger = get_logger(__name__)
settings = get_settings()

# Password hashing context with bcrypt configuration
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto"
)

INVITATION_TOKEN_LENGTH = 64


class SecurityError(Exception):
    """Base exception for security-related errors."""


class TokenError(SecurityError):
    """Exception raised for token-related errors."""


def generate_password_hash(password: str) -> str:
    """
    Generate a secure hash for the given password.

    Args:
        password: The plain text password to hash

    Returns:
        The hashed password
    """
    # bcrypt only considers the first 72 bytes
    if len(password.encode("utf-8")) > 72:
        password = password.encode("utf-8")[:72].decode("utf-8", errors="ignore")

    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning("Password verification failed", error=str(e))
        return False


def generate_secure_token(length: int = INVITATION_TOKEN_LENGTH) -> str:
    """
    Generate a cryptographically secure URL-safe token.

    Args:
        length: Number of characters in the returned token

    Returns:
        A random token drawn from the URL-safe base64 alphabet
    """
    # token_urlsafe yields ~1.3 chars per byte; over-generate then cut
    return secrets.token_urlsafe(length)[:length]


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: Value stored in the ``sub`` claim (the user id)
        expires_delta: Token lifetime, defaults to the configured expiry
        extra_claims: Additional claims to embed

    Returns:
        The encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode: Dict[str, Any] = dict(extra_claims or {})
    to_encode.update({"sub": str(subject), "exp": expire, "iat": now, "type": "access"})

    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    logger.debug("Access token created", expires_at=expire.isoformat())
    return encoded_jwt


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        TokenError: If the token is expired, malformed or of the wrong type
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e

    if payload.get("type") != "access":
        raise TokenError("Invalid token type")

    return payload
