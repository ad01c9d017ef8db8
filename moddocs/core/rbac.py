"""
Role-Based Access Control (RBAC) rules for mods.

Everything here is pure: callers resolve the acting user's role first and
then ask these helpers what that role may do. The FastAPI dependencies
that perform the lookup live in ``moddocs.modules.mods.dependencies``.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from moddocs.core.exceptions import AuthorizationException


class ModRole(str, Enum):
    """Role a user holds on a mod."""
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


# Roles that can be stored on a membership row; ownership lives on the mod
COLLABORATOR_ROLES = (ModRole.ADMIN, ModRole.EDITOR, ModRole.VIEWER)


class Permission(str, Enum):
    """Actions guarded on a mod."""
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"
    MANAGE_COLLABORATORS = "manage_collaborators"
    MANAGE_SETTINGS = "manage_settings"


class Visibility(str, Enum):
    """Who can see a mod."""
    PUBLIC = "public"
    PRIVATE = "private"
    UNLISTED = "unlisted"


ROLE_PERMISSIONS: Dict[ModRole, FrozenSet[Permission]] = {
    ModRole.OWNER: frozenset({
        Permission.VIEW,
        Permission.EDIT,
        Permission.DELETE,
        Permission.MANAGE_COLLABORATORS,
        Permission.MANAGE_SETTINGS,
    }),
    ModRole.ADMIN: frozenset({
        Permission.VIEW,
        Permission.EDIT,
        Permission.MANAGE_COLLABORATORS,
    }),
    ModRole.EDITOR: frozenset({Permission.VIEW, Permission.EDIT}),
    ModRole.VIEWER: frozenset({Permission.VIEW}),
}


def permissions_for(role: Optional[ModRole]) -> FrozenSet[Permission]:
    """Permissions granted to ``role``; none for anonymous or non-members."""
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS[ModRole(role)]


def has_permission(role: Optional[ModRole], permission: Permission) -> bool:
    """Check a single permission against the static table."""
    return Permission(permission) in permissions_for(role)


def can_view(visibility: Visibility, role: Optional[ModRole]) -> bool:
    """
    Visibility gate for the authenticated area.

    Public mods are readable by anyone, including anonymous callers.
    Private and unlisted mods need the owner or a collaborator.
    """
    if Visibility(visibility) == Visibility.PUBLIC:
        return True
    return role is not None


def ensure_permission(role: Optional[ModRole], permission: Permission, message: Optional[str] = None) -> None:
    """Raise ``AuthorizationException`` unless ``role`` holds ``permission``."""
    if not has_permission(role, permission):
        raise AuthorizationException(
            message or f"Access denied: '{Permission(permission).value}' permission required"
        )


def ensure_can_assign_role(actor_role: Optional[ModRole], new_role: ModRole) -> None:
    """
    Check that ``actor_role`` may hand out ``new_role``.

    Only the owner can grant admin; the owner role itself is never granted.
    """
    ensure_permission(actor_role, Permission.MANAGE_COLLABORATORS)

    new_role = ModRole(new_role)
    if new_role not in COLLABORATOR_ROLES:
        raise AuthorizationException("The owner role cannot be assigned")
    if new_role == ModRole.ADMIN and actor_role != ModRole.OWNER:
        raise AuthorizationException("Only the owner can grant the admin role")


def ensure_can_remove_collaborator(
    actor_role: Optional[ModRole],
    target_role: ModRole,
    is_self: bool,
) -> None:
    """
    Check that the actor may remove a collaborator holding ``target_role``.

    Members can always leave a mod themselves. Removing anyone else needs
    ``manage_collaborators``, and admins cannot remove other admins.
    """
    target_role = ModRole(target_role)
    if target_role == ModRole.OWNER:
        raise AuthorizationException("The owner cannot be removed from a mod")
    if is_self:
        return

    ensure_permission(actor_role, Permission.MANAGE_COLLABORATORS)
    if target_role == ModRole.ADMIN and actor_role != ModRole.OWNER:
        raise AuthorizationException("Only the owner can remove an admin")


def ensure_can_change_role(
    actor_role: Optional[ModRole],
    target_role: ModRole,
    new_role: ModRole,
) -> None:
    """Check that the actor may move a collaborator from ``target_role`` to ``new_role``."""
    target_role = ModRole(target_role)
    if target_role == ModRole.OWNER:
        raise AuthorizationException("The owner's role cannot be changed")

    ensure_can_assign_role(actor_role, new_role)
    if target_role == ModRole.ADMIN and actor_role != ModRole.OWNER:
        raise AuthorizationException("Only the owner can change an admin's role")
