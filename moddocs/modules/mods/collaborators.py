"""
Collaborator management for mods.

Adding a collaborator grants membership straight away and records a
tokenized invitation that is emailed to the user.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.config import get_settings
from moddocs.core.exceptions import ResourceNotFoundException, ValidationException
from moddocs.core.rbac import (
    ModRole,
    Permission,
    ensure_can_assign_role,
    ensure_can_change_role,
    ensure_can_remove_collaborator,
    ensure_permission,
)
from moddocs.core.security import generate_secure_token
from moddocs.modules.auth.models import User
from moddocs.modules.auth.service import AuthService

from .mailer import InvitationMailer
from .models import Mod, ModInvitation, ModMember
from .schemas import CollaboratorCreate

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class AddedCollaborator:
    member: ModMember
    user: User
    invitation: ModInvitation
    email_sent: bool


class CollaboratorService:
    """Service class for collaborator operations on a single mod."""

    def __init__(self, db: AsyncSession, mod: Mod, mailer: Optional[InvitationMailer] = None):
        self.db = db
        self.mod = mod
        self.mailer = mailer

    async def _get_member(self, user_id: UUID) -> Optional[ModMember]:
        result = await self.db.execute(
            select(ModMember).where(
                ModMember.mod_id == self.mod.id,
                ModMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_invitation(self, user_id: UUID) -> Optional[ModInvitation]:
        result = await self.db.execute(
            select(ModInvitation).where(
                ModInvitation.mod_id == self.mod.id,
                ModInvitation.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_collaborators(self, actor_role: Optional[ModRole]) -> Tuple[User, List[Tuple[ModMember, User]]]:
        """
        List the owner and every collaborator.

        Returns:
            ``(owner, [(membership, user), ...])`` ordered by join date
        """
        ensure_permission(actor_role, Permission.MANAGE_COLLABORATORS)

        owner = await self.db.get(User, self.mod.owner_id)
        result = await self.db.execute(
            select(ModMember, User)
            .join(User, User.id == ModMember.user_id)
            .where(ModMember.mod_id == self.mod.id)
            .order_by(ModMember.created_at)
        )
        return owner, [(member, user) for member, user in result.all()]

    async def add_collaborator(
        self,
        data: CollaboratorCreate,
        actor: User,
        actor_role: Optional[ModRole],
    ) -> AddedCollaborator:
        """
        Add a collaborator by username or email.

        Raises:
            AuthorizationException: If the actor cannot grant ``data.role``
            ValidationException: If the user is unknown, is the owner,
                already collaborates or has a pending invitation
        """
        ensure_can_assign_role(actor_role, data.role)

        user = await AuthService(self.db).get_user_by_username_or_email(data.username)
        if user is None:
            raise ValidationException.for_field(
                "username", "User not found. Please check the username or email."
            )
        if self.mod.is_owned_by(user.id):
            raise ValidationException.for_field("username", "This user is the owner of this mod.")
        if await self._get_member(user.id) is not None:
            raise ValidationException.for_field("username", "This user is already a collaborator.")

        invitation = await self._get_invitation(user.id)
        if invitation is not None and not invitation.is_accepted and not invitation.is_expired():
            raise ValidationException.for_field("username", "This user already has a pending invitation.")

        role = ModRole(data.role).value
        member = ModMember(
            mod_id=self.mod.id,
            user_id=user.id,
            role=role,
            invited_by=actor.id,
        )
        self.db.add(member)

        # One invitation row per (mod, user); re-inviting refreshes it
        if invitation is None:
            invitation = ModInvitation(mod_id=self.mod.id, user_id=user.id)
            self.db.add(invitation)
        invitation.invited_by = actor.id
        invitation.role = role
        invitation.token = generate_secure_token()
        invitation.expires_at = ModInvitation.expiry_from_now(settings.invitation_expire_days)
        invitation.accepted_at = None

        await self.db.commit()

        logger.info(
            "Collaborator added",
            mod_id=str(self.mod.id),
            user_id=str(user.id),
            role=role,
            invited_by=str(actor.id),
        )

        email_sent = False
        if self.mailer is not None:
            email_sent = await self.mailer.send_invitation(
                to_address=user.email,
                collaborator_name=user.display_name,
                inviter_name=actor.display_name,
                mod_name=self.mod.name,
                role=ModRole(role),
                token=invitation.token,
            )

        return AddedCollaborator(member=member, user=user, invitation=invitation, email_sent=email_sent)

    async def update_role(self, user_id: UUID, new_role: ModRole, actor_role: Optional[ModRole]) -> Tuple[ModMember, User]:
        """
        Change a collaborator's role.

        Raises:
            ResourceNotFoundException: If the user does not collaborate on the mod
            AuthorizationException: If the actor may not make this change
        """
        ensure_permission(actor_role, Permission.MANAGE_COLLABORATORS)
        if self.mod.is_owned_by(user_id):
            ensure_can_change_role(actor_role, ModRole.OWNER, new_role)

        member = await self._get_member(user_id)
        if member is None:
            raise ResourceNotFoundException("Collaborator", user_id)

        ensure_can_change_role(actor_role, ModRole(member.role), new_role)

        old_role = member.role
        member.role = ModRole(new_role).value

        invitation = await self._get_invitation(user_id)
        if invitation is not None and not invitation.is_accepted:
            invitation.role = member.role

        await self.db.commit()

        logger.info(
            "Collaborator role updated",
            mod_id=str(self.mod.id),
            user_id=str(user_id),
            old_role=old_role,
            new_role=member.role,
        )
        user = await self.db.get(User, user_id)
        return member, user

    async def remove_collaborator(self, user_id: UUID, actor: User, actor_role: Optional[ModRole]) -> None:
        """
        Remove a collaborator, or let a member leave.

        Raises:
            ResourceNotFoundException: If the user does not collaborate on the mod
            AuthorizationException: If the actor may not remove this user
        """
        is_self = actor.id == user_id

        if self.mod.is_owned_by(user_id):
            ensure_can_remove_collaborator(actor_role, ModRole.OWNER, is_self)

        member = await self._get_member(user_id)
        if member is None:
            raise ResourceNotFoundException("Collaborator", user_id)

        ensure_can_remove_collaborator(actor_role, ModRole(member.role), is_self)

        await self.db.delete(member)
        await self.db.execute(
            delete(ModInvitation).where(
                ModInvitation.mod_id == self.mod.id,
                ModInvitation.user_id == user_id,
            )
        )
        await self.db.commit()

        logger.info(
            "Collaborator removed",
            mod_id=str(self.mod.id),
            user_id=str(user_id),
            removed_by=str(actor.id),
            left=is_self,
        )
