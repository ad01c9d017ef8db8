"""
Application startup and shutdown event handlers.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from sqlalchemy import func, select

from moddocs.core.config import settings
from moddocs.core.database import close_db, db_manager, init_db
from moddocs.core.logger import get_logger
from moddocs.core.metrics import update_mod_count

logger = get_logger("events")


def _redact(database_url: str) -> str:
    return database_url.split("@")[-1] if "@" in database_url else "***"


async def startup_tasks() -> None:
    """Tasks to run on application startup."""
    # Imported here so every model is registered before the first query
    from moddocs.modules.mods.models import Mod

    await init_db()

    async with db_manager.session_factory() as session:
        count = await session.scalar(select(func.count(Mod.id)).where(Mod.is_deleted.is_(False)))
        update_mod_count(count or 0)

    logger.info(
        "Application started successfully",
        environment=settings.environment,
        debug=settings.debug,
        database=_redact(settings.database_url),
        mods=count or 0,
    )


async def shutdown_tasks() -> None:
    """Tasks to run on application shutdown."""
    await close_db()
    logger.info("Application shutdown completed successfully")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    await startup_tasks()
    yield
    await shutdown_tasks()
