"""
Shared test fixtures and utilities for the test suite.

This module provides common fixtures for database sessions, users, mods,
a recording mailer, local file storage and an HTTP client bound to the
application.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MAIL_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from email.message import EmailMessage
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import moddocs.modules  # noqa: F401
from moddocs.core.config import get_settings
from moddocs.core.database import get_db_session
from moddocs.core.models import Base
from moddocs.core.rbac import ModRole, Visibility
from moddocs.core.security import create_access_token, generate_password_hash
from moddocs.modules.auth.models import User
from moddocs.modules.files.drivers import LocalStorageDriver
from moddocs.modules.mods.mailer import InvitationMailer, get_mailer
from moddocs.modules.mods.models import Mod, ModMember
from moddocs.modules.mods.schemas import ModCreate
from moddocs.modules.mods.service import ModService

# Test database URL for in-memory SQLite
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "SecurePassword123!"


@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt is slow; hash the shared test password once."""
    return generate_password_hash(TEST_PASSWORD)


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={
            "check_same_thread": False,
        },
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Clean up
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


class RecordingMailer(InvitationMailer):
    """Mailer that keeps messages in memory instead of talking to SMTP."""

    def __init__(self, deliver: bool = True):
        super().__init__()
        self.deliver = deliver
        self.outbox: List[EmailMessage] = []

    async def send(self, message: EmailMessage) -> bool:
        self.outbox.append(message)
        return self.deliver


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def failing_mailer() -> RecordingMailer:
    """Mailer whose deliveries always fail."""
    return RecordingMailer(deliver=False)


@pytest.fixture
def storage_root(tmp_path, monkeypatch) -> Path:
    """Point the local storage driver at a temporary directory."""
    root = tmp_path / "storage"
    settings = get_settings()
    monkeypatch.setattr(settings, "local_storage_root", str(root))
    monkeypatch.setattr(settings, "local_storage_url", "http://testserver/storage")
    return root


@pytest.fixture
def local_driver(storage_root) -> LocalStorageDriver:
    return LocalStorageDriver(storage_root, "http://testserver/storage")


@pytest.fixture
def make_user(db_session: AsyncSession, password_hash: str):
    """Factory creating active users with the shared test password."""

    async def _make_user(username: str, full_name: Optional[str] = None) -> User:
        user = User(
            id=uuid4(),
            email=f"{username}@example.com",
            username=username,
            full_name=full_name,
            hashed_password=password_hash,
            is_active=True,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def owner(make_user) -> User:
    return await make_user("owner", "Olive Owner")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user("admin")


@pytest_asyncio.fixture
async def editor_user(make_user) -> User:
    return await make_user("editor")


@pytest_asyncio.fixture
async def viewer_user(make_user) -> User:
    return await make_user("viewer")


@pytest_asyncio.fixture
async def outsider(make_user) -> User:
    return await make_user("outsider")


@pytest.fixture
def add_member(db_session: AsyncSession):
    """Factory granting a role on a mod directly."""

    async def _add_member(mod: Mod, user: User, role: ModRole) -> ModMember:
        member = ModMember(mod_id=mod.id, user_id=user.id, role=ModRole(role).value, invited_by=mod.owner_id)
        db_session.add(member)
        await db_session.commit()
        return member

    return _add_member


@pytest_asyncio.fixture
async def private_mod(db_session: AsyncSession, owner: User) -> Mod:
    """Private mod owned by ``owner``."""
    return await ModService(db_session).create_mod(
        ModCreate(name="Test Mod", description="A test mod", visibility=Visibility.PRIVATE),
        owner,
    )


@pytest_asyncio.fixture
async def public_mod(db_session: AsyncSession, owner: User) -> Mod:
    return await ModService(db_session).create_mod(
        ModCreate(name="Public Mod", visibility=Visibility.PUBLIC),
        owner,
    )


@pytest_asyncio.fixture
async def team_mod(private_mod: Mod, add_member, admin_user, editor_user, viewer_user) -> Mod:
    """Private mod with one collaborator per role."""
    await add_member(private_mod, admin_user, ModRole.ADMIN)
    await add_member(private_mod, editor_user, ModRole.EDITOR)
    await add_member(private_mod, viewer_user, ModRole.VIEWER)
    return private_mod


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def app(session_factory, mailer):
    """Application with the database session and mailer overridden."""
    from main import app as application

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    application.dependency_overrides[get_mailer] = lambda: mailer
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
