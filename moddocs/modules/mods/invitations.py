"""
Invitation token lookup and acceptance.
"""
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from structlog import get_logger

from moddocs.core.exceptions import (
    AuthorizationException,
    GoneException,
    ResourceNotFoundException,
)
from moddocs.core.models import utcnow
from moddocs.modules.auth.models import User

from .models import ModInvitation

logger = get_logger(__name__)


@dataclass
class AcceptResult:
    invitation: ModInvitation
    already_accepted: bool


class InvitationService:
    """Service class for invitation tokens."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_token(self, token: str) -> ModInvitation:
        """
        Load an invitation with its mod and users.

        Raises:
            ResourceNotFoundException: If the token is unknown or its mod
                has been deleted
        """
        result = await self.db.execute(
            select(ModInvitation)
            .options(
                selectinload(ModInvitation.mod),
                selectinload(ModInvitation.user),
                selectinload(ModInvitation.inviter),
            )
            .where(ModInvitation.token == token)
        )
        invitation = result.scalar_one_or_none()
        if invitation is None or invitation.mod is None or invitation.mod.is_deleted:
            raise ResourceNotFoundException("Invitation", token)
        return invitation

    async def accept(self, token: str, user: User) -> AcceptResult:
        """
        Accept an invitation on behalf of ``user``.

        Membership is granted when the collaborator is added, so accepting
        only confirms the invitation. Accepting twice is a no-op success.

        Raises:
            ResourceNotFoundException: Unknown token
            AuthorizationException: The invitation belongs to someone else
            GoneException: The invitation has expired
        """
        invitation = await self.get_by_token(token)

        if invitation.user_id != user.id:
            raise AuthorizationException("This invitation was sent to a different account")

        if invitation.is_accepted:
            return AcceptResult(invitation=invitation, already_accepted=True)

        if invitation.is_expired():
            raise GoneException(
                "This invitation has expired",
                details={"mod": invitation.mod.slug, "expired_at": invitation.expires_at.isoformat()},
            )

        invitation.accepted_at = utcnow()
        await self.db.commit()

        logger.info(
            "Invitation accepted",
            mod_id=str(invitation.mod_id),
            user_id=str(user.id),
            role=invitation.role,
        )
        return AcceptResult(invitation=invitation, already_accepted=False)
