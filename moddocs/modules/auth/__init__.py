"""
Authentication module.

This module handles user registration, login and token validation.
"""

from .models import User
from .schemas import Token, UserCreate, UserResponse, UserSummary

__all__ = [
    "User",
    "Token",
    "UserCreate",
    "UserResponse",
    "UserSummary",
]
