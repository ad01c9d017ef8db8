"""
Mod service.

This module provides business logic for mod management.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.exceptions import ResourceNotFoundException
from moddocs.core.metrics import update_mod_count
from moddocs.core.models import as_utc
from moddocs.core.rbac import ModRole, Visibility
from moddocs.core.slugs import slugify, unique_slug
from moddocs.modules.auth.models import User
from moddocs.modules.pages.models import Page

from .models import Mod, ModMember
from .schemas import ModCreate, ModUpdate

logger = get_logger(__name__)

RECENT_LIMIT = 5

# Fixed segments under /mods
RESERVED_MOD_SLUGS = frozenset({"dashboard"})


class ModService:
    """Service class for mod operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def slug_exists(self, slug: str) -> bool:
        """Slugs stay reserved after a soft delete."""
        result = await self.db.execute(select(Mod.id).where(Mod.slug == slug).limit(1))
        return result.first() is not None

    async def get_mod_by_slug(self, slug: str) -> Mod:
        """
        Get a live mod by slug.

        Raises:
            ResourceNotFoundException: If no live mod has this slug
        """
        result = await self.db.execute(
            select(Mod).where(Mod.slug == slug, Mod.is_deleted.is_(False))
        )
        mod = result.scalar_one_or_none()
        if mod is None:
            raise ResourceNotFoundException("Mod", slug)
        return mod

    async def create_mod(self, mod_data: ModCreate, owner: User) -> Mod:
        """
        Create a new mod owned by ``owner``.

        The slug is derived from the name once; collisions get ``-1``,
        ``-2``... suffixes.
        """
        slug = await unique_slug(slugify(mod_data.name), self.slug_exists, reserved=RESERVED_MOD_SLUGS)

        mod = Mod(
            name=mod_data.name,
            slug=slug,
            description=mod_data.description,
            owner_id=owner.id,
            visibility=mod_data.visibility.value,
            storage_driver=mod_data.storage_driver.value,
        )

        self.db.add(mod)
        await self.db.commit()
        await self.db.refresh(mod)

        logger.info("Mod created", mod_id=str(mod.id), slug=mod.slug, owner_id=str(owner.id))
        await self._refresh_mod_gauge()
        return mod

    async def update_mod(self, mod: Mod, mod_data: ModUpdate) -> Mod:
        """Apply settings changes; renaming keeps the existing slug."""
        update_data = mod_data.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if field == "name" and value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            setattr(mod, field, value)

        await self.db.commit()
        await self.db.refresh(mod)

        logger.info("Mod updated", mod_id=str(mod.id), fields=sorted(update_data))
        return mod

    async def delete_mod(self, mod: Mod) -> None:
        """Soft delete the mod; its slug stays reserved."""
        mod.soft_delete()
        await self.db.commit()

        logger.info("Mod deleted", mod_id=str(mod.id), slug=mod.slug)
        await self._refresh_mod_gauge()

    async def get_membership(self, mod_id: UUID, user_id: UUID) -> Optional[ModMember]:
        result = await self.db.execute(
            select(ModMember).where(
                ModMember.mod_id == mod_id,
                ModMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def resolve_role(self, mod: Mod, user: Optional[User]) -> Optional[ModRole]:
        """
        Resolve the role ``user`` holds on ``mod``.

        Returns:
            ``owner`` for the owner, the membership role for collaborators,
            ``None`` for everyone else including anonymous callers
        """
        if user is None:
            return None
        if mod.is_owned_by(user.id):
            return ModRole.OWNER

        member = await self.get_membership(mod.id, user.id)
        return ModRole(member.role) if member else None

    async def get_user_mods(self, user: User) -> Tuple[List[Mod], List[Tuple[Mod, ModRole]]]:
        """
        Get the mods a user owns and the mods they collaborate on.

        Returns:
            ``(owned, collaborative)`` both newest first; collaborative
            entries carry the user's role
        """
        owned_result = await self.db.execute(
            select(Mod)
            .where(Mod.owner_id == user.id, Mod.is_deleted.is_(False))
            .order_by(Mod.created_at.desc())
        )
        owned = list(owned_result.scalars().all())

        shared_result = await self.db.execute(
            select(Mod, ModMember.role)
            .join(ModMember, ModMember.mod_id == Mod.id)
            .where(ModMember.user_id == user.id, Mod.is_deleted.is_(False))
            .order_by(Mod.created_at.desc())
        )
        collaborative = [(mod, ModRole(role)) for mod, role in shared_result.all()]

        return owned, collaborative

    async def count_pages(self, mod_ids: Iterable[UUID]) -> Dict[UUID, int]:
        mod_ids = list(mod_ids)
        if not mod_ids:
            return {}
        result = await self.db.execute(
            select(Page.mod_id, func.count(Page.id))
            .where(Page.mod_id.in_(mod_ids), Page.is_deleted.is_(False))
            .group_by(Page.mod_id)
        )
        return {mod_id: count for mod_id, count in result.all()}

    async def count_collaborators(self, mod_ids: Iterable[UUID]) -> Dict[UUID, int]:
        mod_ids = list(mod_ids)
        if not mod_ids:
            return {}
        result = await self.db.execute(
            select(ModMember.mod_id, func.count(ModMember.id))
            .where(ModMember.mod_id.in_(mod_ids))
            .group_by(ModMember.mod_id)
        )
        return {mod_id: count for mod_id, count in result.all()}

    async def get_public_mods(self) -> List[Mod]:
        """Mods listed in the public directory; unlisted ones are link-only."""
        result = await self.db.execute(
            select(Mod)
            .where(Mod.visibility == Visibility.PUBLIC.value, Mod.is_deleted.is_(False))
            .order_by(Mod.name)
        )
        return list(result.scalars().all())

    async def get_dashboard(self, user: User) -> dict:
        """Aggregate counts and recent activity across the user's mods."""
        owned, collaborative = await self.get_user_mods(user)
        mods_by_id = {mod.id: mod for mod in owned}
        mods_by_id.update({mod.id: mod for mod, _ in collaborative})

        total_pages = sum((await self.count_pages(mods_by_id)).values())

        recent_pages = []
        if mods_by_id:
            result = await self.db.execute(
                select(Page)
                .where(Page.mod_id.in_(list(mods_by_id)), Page.is_deleted.is_(False))
                .order_by(Page.updated_at.desc())
                .limit(RECENT_LIMIT)
            )
            for page in result.scalars().all():
                mod = mods_by_id[page.mod_id]
                recent_pages.append({
                    "id": page.id,
                    "title": page.title,
                    "slug": page.slug,
                    "mod_id": mod.id,
                    "mod_slug": mod.slug,
                    "mod_name": mod.name,
                    "updated_at": page.updated_at,
                })

        recent_mods = sorted(mods_by_id.values(), key=lambda m: as_utc(m.updated_at), reverse=True)[:RECENT_LIMIT]

        return {
            "owned_mods": len(owned),
            "collaborative_mods": len(collaborative),
            "total_pages": total_pages,
            "recent_pages": recent_pages,
            "recent_mods": recent_mods,
        }

    async def _refresh_mod_gauge(self) -> None:
        count = await self.db.scalar(select(func.count(Mod.id)).where(Mod.is_deleted.is_(False)))
        update_mod_count(count or 0)
