"""Invitation store: reads and writes on ``studio_invitations``."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.invitation import StudioInvitation
from app.models.studio import Studio
from studiodesk_shared.schemas.common import InvitationStatus

PENDING = InvitationStatus.PENDING.value


async def find_pending_invitations_by_email(
    session: AsyncSession,
    email: str,
    *,
    now: Optional[datetime] = None,
) -> list[tuple[StudioInvitation, Studio]]:
    """Pending, unaccepted, unexpired invitations for ``email``, newest first."""
    now = now or utcnow()
    result = await session.execute(
        select(StudioInvitation, Studio)
        .join(Studio, Studio.id == StudioInvitation.studio_id)
        .where(
            StudioInvitation.email == email,
            StudioInvitation.status == PENDING,
            StudioInvitation.accepted_at.is_(None),
            StudioInvitation.expires_at > now,
        )
        .order_by(StudioInvitation.created_at.desc(), StudioInvitation.id)
    )
    return [(inv, studio) for inv, studio in result.all()]


async def find_invitation_by_id(
    session: AsyncSession, invitation_id: uuid.UUID
) -> Optional[StudioInvitation]:
    result = await session.execute(
        select(StudioInvitation)
        .where(StudioInvitation.id == invitation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_invitation_by_token_hash(
    session: AsyncSession, token_hash: str
) -> Optional[StudioInvitation]:
    """Invitation for a token hash in any status."""
    result = await session.execute(
        select(StudioInvitation).where(StudioInvitation.token_hash == token_hash)
    )
    return result.scalar_one_or_none()


async def find_pending_invitation_for_email(
    session: AsyncSession, studio_id: uuid.UUID, email: str
) -> Optional[StudioInvitation]:
    result = await session.execute(
        select(StudioInvitation).where(
            StudioInvitation.studio_id == studio_id,
            StudioInvitation.email == email,
            StudioInvitation.status == PENDING,
        )
    )
    return result.scalar_one_or_none()


async def mark_invitation_accepted(
    session: AsyncSession,
    invitation_id: uuid.UUID,
    *,
    accepted_at: Optional[datetime] = None,
) -> bool:
    """Flip a pending invitation to accepted. False if it was not pending."""
    accepted_at = accepted_at or utcnow()
    result = await session.execute(
        update(StudioInvitation)
        .where(StudioInvitation.id == invitation_id, StudioInvitation.status == PENDING)
        .values(
            status=InvitationStatus.ACCEPTED.value,
            accepted_at=accepted_at,
            updated_at=accepted_at,
        )
    )
    return result.rowcount == 1


async def create_or_refresh_invitation(
    session: AsyncSession,
    *,
    studio_id: uuid.UUID,
    email: str,
    role: str,
    token_hash: str,
    expires_at: datetime,
    invited_by: Optional[uuid.UUID],
) -> tuple[StudioInvitation, bool]:
    """Create a pending invitation, or refresh the existing pending one.

    Returns (invitation, refreshed).
    """
    existing = await find_pending_invitation_for_email(session, studio_id, email)
    if existing is not None:
        existing.token_hash = token_hash
        existing.role = role
        existing.expires_at = expires_at
        existing.invited_by = invited_by
        existing.updated_at = utcnow()
        session.add(existing)
        await session.flush()
        return existing, True

    invitation = StudioInvitation(
        studio_id=studio_id,
        email=email,
        role=role,
        token_hash=token_hash,
        expires_at=expires_at,
        invited_by=invited_by,
        status=PENDING,
    )
    session.add(invitation)
    await session.flush()
    return invitation, False


async def refresh_invitation_token(
    session: AsyncSession,
    invitation: StudioInvitation,
    *,
    token_hash: str,
    expires_at: datetime,
) -> StudioInvitation:
    invitation.token_hash = token_hash
    invitation.expires_at = expires_at
    invitation.updated_at = utcnow()
    session.add(invitation)
    await session.flush()
    return invitation


async def revoke_invitation(session: AsyncSession, invitation_id: uuid.UUID) -> bool:
    """Revoke a pending invitation. False if it was not pending."""
    result = await session.execute(
        update(StudioInvitation)
        .where(StudioInvitation.id == invitation_id, StudioInvitation.status == PENDING)
        .values(status=InvitationStatus.REVOKED.value, updated_at=utcnow())
    )
    return result.rowcount == 1


async def list_pending_for_studio(
    session: AsyncSession,
    studio_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
) -> list[StudioInvitation]:
    """Outstanding (pending, unaccepted, unexpired) invitations of a studio."""
    now = now or utcnow()
    result = await session.execute(
        select(StudioInvitation)
        .where(
            StudioInvitation.studio_id == studio_id,
            StudioInvitation.status == PENDING,
            StudioInvitation.accepted_at.is_(None),
            StudioInvitation.expires_at > now,
        )
        .order_by(StudioInvitation.created_at.desc())
    )
    return list(result.scalars().all())
