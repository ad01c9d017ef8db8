"""
Mod router.

This module provides API endpoints for mods, their collaborators and
invitation tokens.
"""
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from moddocs.core.database import get_db_session
from moddocs.core.rbac import ModRole, Permission
from moddocs.modules.auth.dependencies import get_current_user
from moddocs.modules.auth.models import User
from moddocs.modules.auth.schemas import UserSummary
from moddocs.modules.pages.schemas import PageSummary
from moddocs.modules.pages.service import PageService

from .collaborators import CollaboratorService
from .dependencies import (
    ModAccess,
    get_mod_access,
    require_delete,
    require_manage_collaborators,
    require_manage_settings,
)
from .invitations import InvitationService
from .mailer import InvitationMailer, get_mailer
from .models import Mod, ModMember
from .schemas import (
    CollaboratorAddResponse,
    CollaboratorCreate,
    CollaboratorListResponse,
    CollaboratorResponse,
    CollaboratorUpdate,
    DashboardResponse,
    InvitationAcceptResponse,
    InvitationResponse,
    MessageResponse,
    ModCreate,
    ModDetailResponse,
    ModListItem,
    ModListResponse,
    ModResponse,
    ModUpdate,
)
from .service import ModService

logger = get_logger(__name__)

router = APIRouter(tags=["Mods"])


def collaborator_response(user: User, role: ModRole, member: Optional[ModMember] = None) -> CollaboratorResponse:
    return CollaboratorResponse(
        user=UserSummary.model_validate(user),
        email=user.email,
        role=role,
        invited_by=member.invited_by if member else None,
        joined_at=member.created_at if member else None,
    )


def list_item(
    mod: Mod,
    pages: Dict[UUID, int],
    collaborators: Dict[UUID, int],
    role: ModRole,
) -> ModListItem:
    item = ModListItem.model_validate(mod)
    item.pages_count = pages.get(mod.id, 0)
    item.collaborators_count = collaborators.get(mod.id, 0)
    item.role = role
    return item


@router.get(
    "/mods",
    response_model=ModListResponse,
    summary="List mods",
    description="Mods the current user owns and mods they collaborate on, newest first.",
)
async def list_mods(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    service = ModService(db)
    owned, collaborative = await service.get_user_mods(current_user)

    mod_ids: List[UUID] = [mod.id for mod in owned] + [mod.id for mod, _ in collaborative]
    pages = await service.count_pages(mod_ids)
    collaborators = await service.count_collaborators(mod_ids)

    return ModListResponse(
        owned=[list_item(mod, pages, collaborators, ModRole.OWNER) for mod in owned],
        collaborative=[list_item(mod, pages, collaborators, role) for mod, role in collaborative],
    )


@router.get(
    "/mods/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard statistics",
)
async def dashboard(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    stats = await ModService(db).get_dashboard(current_user)
    stats["recent_mods"] = [ModResponse.model_validate(mod) for mod in stats["recent_mods"]]
    return DashboardResponse(**stats)


@router.post(
    "/mods",
    response_model=ModResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create mod",
    description="Create a new mod owned by the current user.",
)
async def create_mod(
    mod_data: ModCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    mod = await ModService(db).create_mod(mod_data, current_user)
    return ModResponse.model_validate(mod)


@router.get(
    "/mods/{slug}",
    response_model=ModDetailResponse,
    summary="Get mod",
)
async def get_mod_detail(
    access: ModAccess = Depends(get_mod_access),
    db: AsyncSession = Depends(get_db_session),
):
    pages = PageService(db, access.mod)
    index_page = await pages.get_index_page()

    return ModDetailResponse(
        mod=ModResponse.model_validate(access.mod),
        role=access.role,
        can_edit=access.can(Permission.EDIT),
        can_manage=access.can(Permission.MANAGE_COLLABORATORS),
        navigation=await pages.get_navigation(),
        index_page=PageSummary.model_validate(index_page) if index_page else None,
    )


@router.patch(
    "/mods/{slug}",
    response_model=ModResponse,
    summary="Update mod settings",
)
async def update_mod(
    mod_data: ModUpdate,
    access: ModAccess = Depends(require_manage_settings),
    db: AsyncSession = Depends(get_db_session),
):
    mod = await ModService(db).update_mod(access.mod, mod_data)
    return ModResponse.model_validate(mod)


@router.delete(
    "/mods/{slug}",
    response_model=MessageResponse,
    summary="Delete mod",
)
async def delete_mod(
    access: ModAccess = Depends(require_delete),
    db: AsyncSession = Depends(get_db_session),
):
    await ModService(db).delete_mod(access.mod)
    return MessageResponse(message="Mod deleted successfully!")


@router.get(
    "/mods/{slug}/collaborators",
    response_model=CollaboratorListResponse,
    summary="List collaborators",
)
async def list_collaborators(
    access: ModAccess = Depends(require_manage_collaborators),
    db: AsyncSession = Depends(get_db_session),
):
    owner, members = await CollaboratorService(db, access.mod).list_collaborators(access.role)

    return CollaboratorListResponse(
        owner=collaborator_response(owner, ModRole.OWNER),
        collaborators=[
            collaborator_response(user, ModRole(member.role), member)
            for member, user in members
        ],
        can_grant_admin=access.role == ModRole.OWNER,
    )


@router.post(
    "/mods/{slug}/collaborators",
    response_model=CollaboratorAddResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add collaborator",
    description="Grant a user a role on the mod and email them an invitation link.",
)
async def add_collaborator(
    collaborator_data: CollaboratorCreate,
    access: ModAccess = Depends(require_manage_collaborators),
    mailer: InvitationMailer = Depends(get_mailer),
    db: AsyncSession = Depends(get_db_session),
):
    added = await CollaboratorService(db, access.mod, mailer).add_collaborator(
        collaborator_data, access.user, access.role
    )

    message = "Collaborator added successfully!"
    if not added.email_sent:
        message += " (Email notification failed to send)"

    return CollaboratorAddResponse(
        message=message,
        collaborator=collaborator_response(added.user, ModRole(added.member.role), added.member),
        email_sent=added.email_sent,
    )


@router.patch(
    "/mods/{slug}/collaborators/{user_id}",
    response_model=CollaboratorResponse,
    summary="Change collaborator role",
)
async def update_collaborator(
    user_id: UUID,
    collaborator_data: CollaboratorUpdate,
    access: ModAccess = Depends(get_mod_access),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    member, user = await CollaboratorService(db, access.mod).update_role(
        user_id, collaborator_data.role, access.role
    )
    return collaborator_response(user, ModRole(member.role), member)


@router.delete(
    "/mods/{slug}/collaborators/{user_id}",
    response_model=MessageResponse,
    summary="Remove collaborator",
    description="Remove a collaborator. Any member may remove themselves.",
)
async def remove_collaborator(
    user_id: UUID,
    access: ModAccess = Depends(get_mod_access),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await CollaboratorService(db, access.mod).remove_collaborator(user_id, current_user, access.role)

    if user_id == current_user.id:
        return MessageResponse(message="You have left the mod.")
    return MessageResponse(message="Collaborator removed successfully!")


@router.get(
    "/invitations/{token}",
    response_model=InvitationResponse,
    summary="Get invitation",
)
async def get_invitation(
    token: str,
    db: AsyncSession = Depends(get_db_session),
):
    invitation = await InvitationService(db).get_by_token(token)

    return InvitationResponse(
        mod=ModResponse.model_validate(invitation.mod),
        invited_user=UserSummary.model_validate(invitation.user),
        inviter=UserSummary.model_validate(invitation.inviter) if invitation.inviter else None,
        role=invitation.role,
        status=invitation.status,
        expires_at=invitation.expires_at,
        accepted_at=invitation.accepted_at,
    )


@router.post(
    "/invitations/{token}/accept",
    response_model=InvitationAcceptResponse,
    summary="Accept invitation",
)
async def accept_invitation(
    token: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    result = await InvitationService(db).accept(token, current_user)
    invitation = result.invitation

    if result.already_accepted:
        message = "You have already accepted this invitation."
    else:
        message = f"You are now a collaborator on {invitation.mod.name}!"

    return InvitationAcceptResponse(
        message=message,
        mod_slug=invitation.mod.slug,
        role=invitation.role,
        already_accepted=result.already_accepted,
    )
