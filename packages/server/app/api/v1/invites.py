"""
Invite redemption API endpoints (caller side).

GET    /api/v1/invites/lookup?token=...    — What a token grants
POST   /api/v1/invites/accept              — Redeem a token
GET    /api/v1/invites/pending             — Open invitations for the caller's e-mail
POST   /api/v1/invites/{inviteId}/accept   — Accept one of them
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, require_identity
from app.core.database import get_session
from app.core.errors import unwrap
from app.core.studio_ref import StudioRef, get_studio_ref
from app.services import invitations as invitation_service
from studiodesk_shared.schemas.memberships import (
    AcceptInviteRequest,
    AcceptInviteResponse,
    InviteContextResponse,
)
from studiodesk_shared.schemas.studios import PendingInviteItem

router = APIRouter()


@router.get("/lookup", response_model=InviteContextResponse)
async def lookup_invite(
    token: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
):
    """Describe the studio and role a token grants. No sign-in required."""
    return unwrap(await invitation_service.lookup_invite(token, session))


@router.post("/accept", response_model=AcceptInviteResponse)
async def accept_invite(
    body: AcceptInviteRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Redeem an invitation or invite-link token and switch to that studio."""
    result = unwrap(
        await invitation_service.accept_invite_by_token(body.token, identity, studio_ref, session)
    )
    studio_ref.apply(response)
    return result


@router.get("/pending", response_model=list[PendingInviteItem])
async def list_pending_invites(
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Open invitations addressed to the caller."""
    return await invitation_service.list_pending_invites_for_email(identity, session)


@router.post("/{inviteId}/accept", response_model=AcceptInviteResponse)
async def accept_pending_invite(
    inviteId: uuid.UUID,
    response: Response,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Accept one invitation from the chooser and switch to its studio."""
    result = unwrap(
        await invitation_service.accept_pending_invite_by_id(
            inviteId, identity, studio_ref, session
        )
    )
    studio_ref.apply(response)
    return result
