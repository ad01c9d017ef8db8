"""
ModDocs - Main Application Entry Point
"""
from fastapi import FastAPI

from moddocs.api.router import api_router
from moddocs.core.config import settings
from moddocs.core.events import lifespan
from moddocs.core.exceptions import setup_exception_handlers
from moddocs.core.logger import get_logger
from moddocs.core.middleware import setup_middleware

logger = get_logger(__name__)


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        swagger_ui_parameters={
            "persistAuthorization": True,
        },
    )

    # Setup middleware stack
    setup_middleware(app)

    # Setup exception handlers
    setup_exception_handlers(app)

    # Include API router
    app.include_router(api_router)

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "docs_url": "/docs" if settings.is_development else None,
            "api_version": "v1"
        }

    @app.get("/health")
    async def health():
        """Simple health check."""
        return {"status": "healthy"}

    logger.info("FastAPI application created and configured")
    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_config=None,  # Use our custom logging
    )
