"""
Authentication router with register, login and profile endpoints.
"""
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from moddocs.core.database import get_db_session
from moddocs.core.exceptions import AuthenticationException
from moddocs.modules.auth import schemas
from moddocs.modules.auth.dependencies import get_current_user
from moddocs.modules.auth.models import User
from moddocs.modules.auth.service import AuthService

router = APIRouter(prefix="/auth")


@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: schemas.UserCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a new user."""
    user = await AuthService(db).create_user(user_data)
    return schemas.UserResponse.model_validate(user)


@router.post("/login", response_model=schemas.LoginResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db_session),
):
    """Login with username (or email) and password."""
    auth_service = AuthService(db)

    user = await auth_service.authenticate_user(form_data.username, form_data.password)
    if user is None:
        raise AuthenticationException("Incorrect username or password")

    return schemas.LoginResponse(
        user=schemas.UserResponse.model_validate(user),
        token=auth_service.create_token(user),
    )


@router.get("/me", response_model=schemas.UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user."""
    return schemas.UserResponse.model_validate(current_user)
