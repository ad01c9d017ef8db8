"""
Public documentation endpoints.

Anonymous readers can browse public mods and follow links to unlisted
ones. Private mods and unpublished pages are reported as missing.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from moddocs.core.database import get_db_session
from moddocs.core.exceptions import ResourceNotFoundException
from moddocs.core.rbac import Visibility
from moddocs.modules.pages.schemas import PageChild, PageResponse
from moddocs.modules.pages.service import PageService

from .models import Mod
from .schemas import ModResponse, PublicModListResponse, PublicModResponse, PublicPageResponse
from .service import ModService

router = APIRouter(prefix="/docs", tags=["Public docs"])


async def get_published_mod(
    slug: str,
    db: AsyncSession = Depends(get_db_session),
) -> Mod:
    mod = await ModService(db).get_mod_by_slug(slug)
    if Visibility(mod.visibility) == Visibility.PRIVATE:
        raise ResourceNotFoundException("Documentation", slug)
    return mod


@router.get("", response_model=PublicModListResponse, summary="List public mods")
async def list_public_mods(db: AsyncSession = Depends(get_db_session)):
    mods = await ModService(db).get_public_mods()
    return PublicModListResponse(mods=[ModResponse.model_validate(mod) for mod in mods])


@router.get("/{slug}", response_model=PublicModResponse, summary="Public mod documentation")
async def show_public_mod(
    mod: Mod = Depends(get_published_mod),
    db: AsyncSession = Depends(get_db_session),
):
    pages = PageService(db, mod)
    index_page = await pages.get_index_page(published_only=True)

    return PublicModResponse(
        mod=ModResponse.model_validate(mod),
        navigation=await pages.get_navigation(),
        index_page=PageResponse.model_validate(index_page) if index_page else None,
    )


@router.get("/{slug}/{page_slug}", response_model=PublicPageResponse, summary="Public page")
async def show_public_page(
    page_slug: str,
    mod: Mod = Depends(get_published_mod),
    db: AsyncSession = Depends(get_db_session),
):
    pages = PageService(db, mod)
    page = await pages.get_page_by_slug(page_slug, published_only=True)

    return PublicPageResponse(
        mod=ModResponse.model_validate(mod),
        page=PageResponse.model_validate(page),
        children=[PageChild.model_validate(child) for child in await pages.get_published_children(page)],
        navigation=await pages.get_navigation(),
    )
