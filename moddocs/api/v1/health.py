"""
Health check and metrics endpoints.
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response, status

from moddocs.core.config import settings
from moddocs.core.database import db_manager
from moddocs.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
    }


@router.get("/health/detailed")
async def detailed_health_check(response: Response) -> Dict[str, Any]:
    """Health check including the database connection."""
    database_ok = await db_manager.health_check()
    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if database_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.app_version,
        "checks": {
            "database": {
                "status": "healthy" if database_ok else "unhealthy",
            },
        },
    }


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())
