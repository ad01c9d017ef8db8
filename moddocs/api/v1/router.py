"""
API v1 router registry.
"""
from fastapi import APIRouter

from moddocs.modules.auth.router import router as auth_router
from moddocs.modules.files.router import router as files_router
from moddocs.modules.mods.public import router as docs_router
from moddocs.modules.mods.router import router as mods_router
from moddocs.modules.pages.router import router as pages_router

from .health import router as health_router

# Create v1 router
v1_router = APIRouter(prefix="/v1")

# Include all v1 routers
v1_router.include_router(auth_router, tags=["Authentication"])
v1_router.include_router(mods_router)
v1_router.include_router(pages_router)
v1_router.include_router(files_router)
v1_router.include_router(docs_router)
v1_router.include_router(health_router, tags=["Health & Monitoring"])


@v1_router.get("/info")
async def api_info():
    """Get API v1 information."""
    return {
        "version": "v1",
        "endpoints": {
            "auth": "/api/v1/auth",
            "mods": "/api/v1/mods",
            "invitations": "/api/v1/invitations",
            "docs": "/api/v1/docs",
            "health": "/api/v1/health",
            "metrics": "/api/v1/metrics",
        },
    }
