"""
Page router.

This module provides API endpoints for the pages of a mod.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.database import get_db_session
from moddocs.core.rbac import Permission
from moddocs.modules.mods.dependencies import ModAccess, get_mod_access, require_edit
from moddocs.modules.mods.schemas import MessageResponse

from .schemas import (
    MIN_SEARCH_LENGTH,
    AutosaveRequest,
    AutosaveResponse,
    PageChild,
    PageCreate,
    PageDetailResponse,
    PageListResponse,
    PageResponse,
    PageSummary,
    PageUpdate,
    ReorderRequest,
    ReorderResponse,
    SearchResponse,
    SearchResult,
)
from .service import PageService

logger = get_logger(__name__)

router = APIRouter(prefix="/mods/{slug}/pages", tags=["Pages"])


async def build_page_detail(service: PageService, page, can_edit: bool) -> PageDetailResponse:
    path = await service.get_breadcrumbs(page)
    return PageDetailResponse(
        page=PageResponse.model_validate(page),
        path=[{"id": p.id, "title": p.title, "slug": p.slug} for p in path],
        children=[PageChild.model_validate(c) for c in await service.get_published_children(page)],
        navigation=await service.get_navigation(),
        depth=len(path) - 1,
        can_edit=can_edit,
    )


@router.get(
    "",
    response_model=PageListResponse,
    summary="List pages",
    description="Flat page list ordered by parent and position, plus the nested tree.",
)
async def list_pages(
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    service = PageService(db, access.mod)
    pages = await service.list_pages()
    return PageListResponse(
        pages=[PageSummary.model_validate(p) for p in pages],
        tree=await service.get_tree(),
        can_edit=access.can(Permission.EDIT),
    )


@router.post(
    "",
    response_model=PageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create page",
)
async def create_page(
    page_data: PageCreate,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    page = await PageService(db, access.mod).create_page(page_data, access.user)
    return PageResponse.model_validate(page)


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search pages",
    description="Case-insensitive search over published page titles and content.",
)
async def search_pages(
    query: str = Query(..., min_length=MIN_SEARCH_LENGTH, description="Search text"),
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    pages = await PageService(db, access.mod).search(query)
    return SearchResponse(query=query, pages=[SearchResult.model_validate(p) for p in pages])


@router.post(
    "/reorder",
    response_model=ReorderResponse,
    summary="Reorder pages",
    description="Apply new parents and positions from a drag-and-drop tree editor.",
)
async def reorder_pages(
    reorder: ReorderRequest,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    updated, skipped = await PageService(db, access.mod).reorder(reorder.pages, access.user)
    return ReorderResponse(updated=updated, skipped=skipped)


@router.get(
    "/{page_slug}",
    response_model=PageDetailResponse,
    summary="Get page",
)
async def get_page(
    page_slug: str,
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    service = PageService(db, access.mod)
    page = await service.get_page_by_slug(page_slug)
    return await build_page_detail(service, page, access.can(Permission.EDIT))


@router.patch(
    "/{page_slug}",
    response_model=PageResponse,
    summary="Update page",
)
async def update_page(
    page_slug: str,
    page_data: PageUpdate,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    service = PageService(db, access.mod)
    page = await service.get_page_by_slug(page_slug)
    page = await service.update_page(page, page_data, access.user)
    return PageResponse.model_validate(page)


@router.delete(
    "/{page_slug}",
    response_model=MessageResponse,
    summary="Delete page",
    description="Soft delete the page and every page below it.",
)
async def delete_page(
    page_slug: str,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    service = PageService(db, access.mod)
    page = await service.get_page_by_slug(page_slug)
    await service.delete_page(page, access.user)
    return MessageResponse(message="Page deleted successfully!")


@router.post(
    "/{page_slug}/autosave",
    response_model=AutosaveResponse,
    summary="Autosave page content",
)
async def autosave_page(
    page_slug: str,
    autosave: AutosaveRequest,
    access: ModAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db_session),
):
    service = PageService(db, access.mod)
    page = await service.get_page_by_slug(page_slug)
    page = await service.autosave(page, autosave.content, access.user)
    return AutosaveResponse(updated_at=page.updated_at)
