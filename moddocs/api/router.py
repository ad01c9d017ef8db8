"""
Top-level /api router for ModDocs.

Mounts each versioned router (currently only v1: auth, mods, pages, files,
public docs and health) and exposes the version listing.
"""
from fastapi import APIRouter

from .v1.router import v1_router

api_router = APIRouter(prefix="/api")

api_router.include_router(v1_router)


@api_router.get("/versions")
async def api_versions():
    """Get available API versions."""
    return {
        "versions": [
            {
                "version": "v1",
                "status": "stable",
                "path": "/api/v1"
            }
        ],
        "current": "v1"
    }
