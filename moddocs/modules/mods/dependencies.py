"""
Mod dependencies.

This module provides dependency functions that resolve a mod from the URL
and the caller's role on it, and enforce visibility and permissions.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from moddocs.core.database import get_db_session
from moddocs.core.exceptions import AuthorizationException
from moddocs.core.rbac import ModRole, Permission, can_view, ensure_permission, has_permission
from moddocs.modules.auth.dependencies import get_current_user, get_optional_user
from moddocs.modules.auth.models import User

from .models import Mod
from .service import ModService


@dataclass
class ModAccess:
    """A mod together with the calling user and the role they hold on it."""

    mod: Mod
    user: Optional[User]
    role: Optional[ModRole]

    def can(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)


async def get_mod(
    slug: str,
    db: AsyncSession = Depends(get_db_session),
) -> Mod:
    """
    Get a live mod by the ``slug`` path parameter.

    Raises:
        ResourceNotFoundException: If the mod does not exist or was deleted
    """
    return await ModService(db).get_mod_by_slug(slug)


async def get_mod_access(
    mod: Mod = Depends(get_mod),
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> ModAccess:
    """
    Resolve the caller's role and apply the visibility gate.

    Raises:
        AuthorizationException: If the mod is not public and the caller
            is neither its owner nor a collaborator
    """
    role = await ModService(db).resolve_role(mod, user)
    if not can_view(mod.visibility, role):
        raise AuthorizationException("Access denied: you do not have access to this mod")
    return ModAccess(mod=mod, user=user, role=role)


class ModPermissionChecker:
    """
    Dependency class that requires an authenticated caller holding
    ``permission`` on the mod in the URL.
    """

    def __init__(self, permission: Permission):
        self.permission = permission

    async def __call__(
        self,
        access: ModAccess = Depends(get_mod_access),
        current_user: User = Depends(get_current_user),
    ) -> ModAccess:
        ensure_permission(access.role, self.permission)
        return access


def require_permission(permission: Permission) -> ModPermissionChecker:
    """Create a dependency requiring ``permission`` on the current mod."""
    return ModPermissionChecker(permission)


require_view = require_permission(Permission.VIEW)
require_edit = require_permission(Permission.EDIT)
require_delete = require_permission(Permission.DELETE)
require_manage_collaborators = require_permission(Permission.MANAGE_COLLABORATORS)
require_manage_settings = require_permission(Permission.MANAGE_SETTINGS)
