"""
Database configuration and session management.

This module provides:
- Async SQLAlchemy engine setup
- Database session management
- Database dependency injection
"""

from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from structlog import get_logger

from moddocs.core.config import get_settings

logger = get_logger(__name__)
settings = get_settings()


class DatabaseManager:
    """Manages database connections and sessions."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.database_url = database_url or settings.database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine, creating it if necessary."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory, creating it if necessary."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _create_engine(self) -> AsyncEngine:
        """Create and configure the async database engine."""
        engine_kwargs: Dict[str, Any] = {
            "url": self.database_url,
            "echo": settings.debug,
            "pool_pre_ping": True,
        }

        # SQLite picks its own pool; sizing arguments only apply to server databases
        if not self.is_sqlite:
            engine_kwargs.update(
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_recycle=3600,
            )

        engine = create_async_engine(**engine_kwargs)

        if self.is_sqlite:
            @event.listens_for(engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                """Enforce foreign keys so cascades behave as on PostgreSQL."""
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        logger.info(
            "Database engine created",
            database_url=self.database_url.split("@")[-1],  # Hide credentials
        )

        return engine

    async def close(self) -> None:
        """Close the database engine and all connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine closed")

    async def health_check(self) -> bool:
        """Check if the database is accessible."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error("Database health check failed", error=str(e))
            return False


# Global database manager instance
db_manager = DatabaseManager()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get a database session.

    Services commit their own units of work; anything left pending when
    the request finishes is committed here, and everything is rolled back
    if the handler raises.

    Yields:
        AsyncSession: Database session for the request
    """
    async with db_manager.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug("Database session rolled back", error=str(e))
            raise


async def init_db() -> None:
    """Verify the database connection on startup."""
    if not await db_manager.health_check():
        raise RuntimeError("Database health check failed")
    logger.info("Database initialized successfully")


async def close_db() -> None:
    """Close database connections."""
    await db_manager.close()
