"""
Team management API endpoints (scoped to the current studio).

GET    /api/v1/team                          — Members, invites, invite link
PATCH  /api/v1/team/members/{membershipId}   — Change a member's role
DELETE /api/v1/team/members/{membershipId}   — Remove a member (owner only)
POST   /api/v1/team/invites                  — Invite by e-mail
POST   /api/v1/team/invites/{inviteId}/resend — New token + expiry
DELETE /api/v1/team/invites/{inviteId}       — Revoke a pending invite
POST   /api/v1/team/invite-link              — Enable/disable the invite link
POST   /api/v1/team/invite-link/reset        — Rotate the invite link token
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, require_identity
from app.core.database import get_session
from app.core.errors import unwrap
from app.core.studio_ref import StudioRef, get_studio_ref
from app.services import invitations as invitation_service
from app.services import invite_links as invite_link_service
from app.services import memberships as membership_service
from studiodesk_shared.schemas.memberships import (
    InvitationResponse,
    InviteCreateRequest,
    InviteCreateResponse,
    InviteLinkResponse,
    InviteLinkToggleRequest,
    InviteResendRequest,
    MemberResponse,
    RoleChangeRequest,
    TeamResponse,
)

router = APIRouter()


def _member(membership) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        user_id=membership.user_id,
        role=membership.role,
        status=membership.status,
        joined_at=membership.joined_at or membership.created_at,
    )


@router.get("", response_model=TeamResponse)
async def get_team(
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Team roster for the current studio."""
    return unwrap(await membership_service.get_team(studio_ref.get(), identity, session))


@router.patch("/members/{membershipId}", response_model=MemberResponse)
async def change_role(
    membershipId: uuid.UUID,
    body: RoleChangeRequest,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role (owners and admins)."""
    membership = unwrap(
        await membership_service.change_member_role(
            studio_ref.get(), identity, membershipId, body.role, session
        )
    )
    return _member(membership)


@router.delete("/members/{membershipId}", response_model=MemberResponse)
async def remove_member(
    membershipId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member from the current studio (owner only)."""
    membership = unwrap(
        await membership_service.remove_member(studio_ref.get(), identity, membershipId, session)
    )
    return _member(membership)


@router.post("/invites", response_model=InviteCreateResponse, status_code=201)
async def create_invite(
    body: InviteCreateRequest,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Invite a person by e-mail. The invite URL is returned once."""
    return unwrap(
        await invitation_service.create_studio_invite(studio_ref.get(), identity, body, session)
    )


@router.post("/invites/{inviteId}/resend", response_model=InviteCreateResponse)
async def resend_invite(
    inviteId: uuid.UUID,
    body: Optional[InviteResendRequest] = None,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Resend an invitation with a fresh token and expiry."""
    return unwrap(
        await invitation_service.resend_invite(
            studio_ref.get(),
            identity,
            inviteId,
            session,
            expires_in_days=body.expires_in_days if body else None,
        )
    )


@router.delete("/invites/{inviteId}", response_model=InvitationResponse)
async def revoke_invite(
    inviteId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Revoke a pending invitation."""
    return unwrap(
        await invitation_service.revoke_invite(studio_ref.get(), identity, inviteId, session)
    )


@router.post("/invite-link", response_model=InviteLinkResponse)
async def toggle_invite_link(
    body: InviteLinkToggleRequest,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Enable or disable the studio invite link."""
    return unwrap(
        await invite_link_service.toggle_invite_link(
            studio_ref.get(), identity, body.is_enabled, session
        )
    )


@router.post("/invite-link/reset", response_model=InviteLinkResponse)
async def reset_invite_link(
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Rotate the invite link token; the old URL stops working."""
    return unwrap(
        await invite_link_service.reset_invite_link(studio_ref.get(), identity, session)
    )
