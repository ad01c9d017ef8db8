"""
Page service.

This module provides business logic for the page tree of a mod: slugs,
parent validation, ordering, breadcrumbs and navigation.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.exceptions import ResourceNotFoundException, ValidationException
from moddocs.core.models import utcnow
from moddocs.core.slugs import slugify, unique_slug
from moddocs.modules.auth.models import User
from moddocs.modules.files.models import StoredFile
from moddocs.modules.mods.models import Mod

from .models import Page
from .schemas import PageCreate, PageUpdate, ReorderItem

logger = get_logger(__name__)

SEARCH_LIMIT = 20

# Fixed segments under /mods/{slug}/pages
RESERVED_PAGE_SLUGS = frozenset({"search", "reorder"})


def sibling_order(page: Page) -> Tuple[int, str]:
    return page.order_index, page.title.lower()


def is_descendant(candidate_id: UUID, ancestor_id: UUID, pages: Dict[UUID, Page]) -> bool:
    """
    Check whether ``candidate_id`` sits below ``ancestor_id``.

    Walks parent links upward from the candidate; a corrupt cycle in the
    stored data terminates the walk instead of looping.
    """
    seen = set()
    current = pages.get(candidate_id)
    while current is not None and current.parent_id is not None:
        if current.parent_id == ancestor_id:
            return True
        if current.parent_id in seen:
            return False
        seen.add(current.parent_id)
        current = pages.get(current.parent_id)
    return False


def build_tree(pages: Iterable[Page]) -> List[dict]:
    """Nest pages under their parents; orphans are treated as roots."""
    pages = list(pages)
    known = {page.id for page in pages}
    children = defaultdict(list)
    for page in pages:
        parent_id = page.parent_id if page.parent_id in known else None
        children[parent_id].append(page)

    def branch(parent_id: Optional[UUID], seen: frozenset) -> List[dict]:
        nodes = []
        for page in sorted(children.get(parent_id, []), key=sibling_order):
            if page.id in seen:
                continue
            nodes.append({
                "id": page.id,
                "title": page.title,
                "slug": page.slug,
                "parent_id": page.parent_id,
                "order_index": page.order_index,
                "is_index": page.is_index,
                "published": page.published,
                "children": branch(page.id, seen | {page.id}),
            })
        return nodes

    return branch(None, frozenset())


class PageService:
    """Service class for page operations within a single mod."""

    def __init__(self, db: AsyncSession, mod: Mod):
        self.db = db
        self.mod = mod

    def _live(self):
        return select(Page).where(Page.mod_id == self.mod.id, Page.is_deleted.is_(False))

    async def _load_pages(self) -> Dict[UUID, Page]:
        result = await self.db.execute(self._live())
        return {page.id: page for page in result.scalars().all()}

    async def list_pages(self) -> List[Page]:
        """All live pages ordered by parent, then position."""
        pages = (await self._load_pages()).values()
        return sorted(
            pages,
            key=lambda p: (p.parent_id is not None, str(p.parent_id or ""), p.order_index, p.title.lower()),
        )

    async def get_tree(self) -> List[dict]:
        return build_tree((await self._load_pages()).values())

    async def get_page_by_slug(self, slug: str, published_only: bool = False) -> Page:
        """
        Get a live page of this mod by slug.

        Raises:
            ResourceNotFoundException: If no such page exists in this mod
        """
        query = self._live().where(Page.slug == slug)
        if published_only:
            query = query.where(Page.published.is_(True))
        result = await self.db.execute(query)
        page = result.scalar_one_or_none()
        if page is None:
            raise ResourceNotFoundException("Page", slug)
        return page

    async def get_page_by_id(self, page_id: UUID) -> Optional[Page]:
        result = await self.db.execute(self._live().where(Page.id == page_id))
        return result.scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_id: Optional[UUID] = None) -> bool:
        """Deleted pages keep their slug reserved."""
        query = select(Page.id).where(Page.mod_id == self.mod.id, Page.slug == slug)
        if exclude_id is not None:
            query = query.where(Page.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def _unique_slug(self, text: str, exclude_id: Optional[UUID] = None) -> str:
        async def exists(candidate: str) -> bool:
            return await self.slug_exists(candidate, exclude_id)

        return await unique_slug(slugify(text), exists, reserved=RESERVED_PAGE_SLUGS)

    async def _clear_index(self, exclude_id: Optional[UUID] = None) -> None:
        stmt = update(Page).where(Page.mod_id == self.mod.id, Page.is_index.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(Page.id != exclude_id)
        await self.db.execute(stmt.values(is_index=False))

    async def _validate_parent(self, parent_id: UUID, page: Optional[Page] = None) -> None:
        """
        Check that ``parent_id`` is a live page of this mod and, when
        moving an existing page, neither the page itself nor one of its
        descendants.

        Raises:
            ValidationException: On any invalid parent
        """
        pages = await self._load_pages()
        if parent_id not in pages:
            raise ValidationException.for_field("parent_id", "Parent page must belong to the same mod.")
        if page is None:
            return
        if parent_id == page.id:
            raise ValidationException.for_field("parent_id", "A page cannot be its own parent.")
        if is_descendant(parent_id, page.id, pages):
            raise ValidationException.for_field("parent_id", "A page cannot be moved below one of its descendants.")

    async def create_page(self, page_data: PageCreate, user: User) -> Page:
        """Create a page; the slug comes from ``slug`` if given, else the title."""
        if page_data.parent_id is not None:
            await self._validate_parent(page_data.parent_id)

        slug = await self._unique_slug(page_data.slug or page_data.title)

        if page_data.is_index:
            await self._clear_index()

        page = Page(
            mod_id=self.mod.id,
            parent_id=page_data.parent_id,
            title=page_data.title,
            slug=slug,
            content=page_data.content,
            order_index=page_data.order_index,
            is_index=page_data.is_index,
            published=page_data.published,
            created_by=user.id,
            updated_by=user.id,
        )
        self.db.add(page)
        await self.db.commit()
        await self.db.refresh(page)

        logger.info("Page created", mod_id=str(self.mod.id), page_id=str(page.id), slug=page.slug)
        return page

    async def update_page(self, page: Page, page_data: PageUpdate, user: User) -> Page:
        """
        Apply the fields present in ``page_data``.

        Title edits keep the stored slug unless it is empty; an explicit
        ``slug`` is slugified and made unique.
        """
        fields = page_data.model_fields_set

        if "parent_id" in fields and page_data.parent_id is not None:
            await self._validate_parent(page_data.parent_id, page)

        if "slug" in fields and page_data.slug:
            page.slug = await self._unique_slug(page_data.slug, exclude_id=page.id)

        if page_data.title is not None:
            page.title = page_data.title
            if not page.slug:
                page.slug = await self._unique_slug(page.title, exclude_id=page.id)

        if "parent_id" in fields:
            page.parent_id = page_data.parent_id
        if page_data.content is not None:
            page.content = page_data.content
        if page_data.order_index is not None:
            page.order_index = page_data.order_index
        if page_data.published is not None:
            page.published = page_data.published
        if page_data.is_index is not None:
            if page_data.is_index:
                await self._clear_index(exclude_id=page.id)
            page.is_index = page_data.is_index

        page.updated_by = user.id
        await self.db.commit()
        await self.db.refresh(page)

        logger.info("Page updated", mod_id=str(self.mod.id), page_id=str(page.id), fields=sorted(fields))
        return page

    async def delete_page(self, page: Page, user: User) -> int:
        """
        Soft delete a page together with its descendants and detach their files.

        Returns:
            Number of pages deleted
        """
        pages = await self._load_pages()
        doomed = [page.id] + [pid for pid in pages if is_descendant(pid, page.id, pages)]

        for page_id in doomed:
            target = pages.get(page_id, page)
            target.soft_delete()
            target.updated_by = user.id

        await self.db.execute(
            update(StoredFile)
            .where(StoredFile.page_id.in_(doomed))
            .values(page_id=None)
        )
        await self.db.commit()

        logger.info("Page deleted", mod_id=str(self.mod.id), page_id=str(page.id), pages=len(doomed))
        return len(doomed)

    async def reorder(self, items: List[ReorderItem], user: User) -> Tuple[int, int]:
        """
        Apply drag-and-drop moves in order.

        Entries for pages outside this mod, or whose parent is foreign,
        the page itself or one of its descendants, are skipped. Each entry
        is checked against the tree as left by the previous ones.

        Returns:
            ``(updated, skipped)``
        """
        pages = await self._load_pages()
        updated = skipped = 0

        for item in items:
            page = pages.get(item.id)
            if page is None:
                skipped += 1
                continue
            if item.parent_id is not None and (
                item.parent_id not in pages
                or item.parent_id == page.id
                or is_descendant(item.parent_id, page.id, pages)
            ):
                skipped += 1
                continue

            page.parent_id = item.parent_id
            page.order_index = item.order_index
            page.updated_by = user.id
            updated += 1

        await self.db.commit()

        logger.info("Pages reordered", mod_id=str(self.mod.id), updated=updated, skipped=skipped)
        return updated, skipped

    async def autosave(self, page: Page, content: str, user: User) -> Page:
        page.content = content
        page.updated_by = user.id
        page.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(page)

        logger.debug("Page autosaved", page_id=str(page.id))
        return page

    async def search(self, query: str) -> List[Page]:
        """Case-insensitive match on title or content over published pages."""
        result = await self.db.execute(
            self._live()
            .where(
                Page.published.is_(True),
                or_(
                    Page.title.icontains(query, autoescape=True),
                    Page.content.icontains(query, autoescape=True),
                ),
            )
            .order_by(Page.title)
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def get_breadcrumbs(self, page: Page) -> List[Page]:
        """Pages from the root down to ``page``."""
        pages = await self._load_pages()
        path = [page]
        seen = {page.id}
        current = pages.get(page.parent_id) if page.parent_id else None
        while current is not None and current.id not in seen:
            path.append(current)
            seen.add(current.id)
            current = pages.get(current.parent_id) if current.parent_id else None
        path.reverse()
        return path

    async def get_depth(self, page: Page) -> int:
        return len(await self.get_breadcrumbs(page)) - 1

    async def get_published_children(self, page: Page) -> List[Page]:
        result = await self.db.execute(
            self._live()
            .where(Page.parent_id == page.id, Page.published.is_(True))
            .order_by(Page.order_index, Page.title)
        )
        return list(result.scalars().all())

    async def get_navigation(self) -> List[dict]:
        """Published root pages, each with its published children."""
        published = [p for p in (await self._load_pages()).values() if p.published]
        children = defaultdict(list)
        for page in published:
            if page.parent_id is not None:
                children[page.parent_id].append(page)

        return [
            {
                "id": root.id,
                "title": root.title,
                "slug": root.slug,
                "children": [
                    {"id": child.id, "title": child.title, "slug": child.slug}
                    for child in sorted(children[root.id], key=sibling_order)
                ],
            }
            for root in sorted((p for p in published if p.parent_id is None), key=sibling_order)
        ]

    async def get_index_page(self, published_only: bool = False) -> Optional[Page]:
        query = self._live().where(Page.is_index.is_(True))
        if published_only:
            query = query.where(Page.published.is_(True))
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()
