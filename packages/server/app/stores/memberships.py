"""Membership store: reads and writes on ``studio_memberships``."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import dialect_name, insert_for
from app.models.base import utcnow
from app.models.membership import StudioMembership
from app.models.studio import Studio
from app.models.user import User
from studiodesk_shared.schemas.common import MembershipStatus

ACTIVE = MembershipStatus.ACTIVE.value


async def list_active_memberships(
    session: AsyncSession, user_id: uuid.UUID
) -> list[tuple[StudioMembership, Studio]]:
    """Active memberships of a user with their studios, newest studio first."""
    result = await session.execute(
        select(StudioMembership, Studio)
        .join(Studio, Studio.id == StudioMembership.studio_id)
        .where(StudioMembership.user_id == user_id, StudioMembership.status == ACTIVE)
        .order_by(Studio.created_at.desc(), Studio.id)
    )
    return [(m, s) for m, s in result.all()]


async def list_studio_members(
    session: AsyncSession, studio_id: uuid.UUID
) -> list[tuple[StudioMembership, User]]:
    """Active members of a studio joined with their users, oldest first."""
    result = await session.execute(
        select(StudioMembership, User)
        .join(User, User.id == StudioMembership.user_id)
        .where(StudioMembership.studio_id == studio_id, StudioMembership.status == ACTIVE)
        .order_by(StudioMembership.created_at, StudioMembership.id)
    )
    return list(result.all())


def _locked(stmt, session: AsyncSession, for_update: bool):
    stmt = stmt.execution_options(populate_existing=True)
    if for_update and dialect_name(session) == "postgresql":
        stmt = stmt.with_for_update()
    return stmt


async def get_membership(
    session: AsyncSession,
    studio_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Optional[StudioMembership]:
    """Membership for (studio, user) in any status."""
    stmt = select(StudioMembership).where(
        StudioMembership.studio_id == studio_id,
        StudioMembership.user_id == user_id,
    )
    result = await session.execute(_locked(stmt, session, for_update))
    return result.scalar_one_or_none()


async def get_membership_by_id(
    session: AsyncSession,
    membership_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Optional[StudioMembership]:
    stmt = select(StudioMembership).where(StudioMembership.id == membership_id)
    result = await session.execute(_locked(stmt, session, for_update))
    return result.scalar_one_or_none()


async def upsert_membership(
    session: AsyncSession,
    *,
    studio_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str,
    joined_at: Optional[datetime] = None,
) -> None:
    """Insert or reactivate the (studio, user) membership with ``role``."""
    now = utcnow()
    joined_at = joined_at or now
    stmt = insert_for(session, StudioMembership).values(
        id=uuid.uuid4(),
        studio_id=studio_id,
        user_id=user_id,
        role=role,
        status=ACTIVE,
        joined_at=joined_at,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["studio_id", "user_id"],
        set_={
            "role": stmt.excluded.role,
            "status": stmt.excluded.status,
            "joined_at": stmt.excluded.joined_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await session.execute(stmt)


async def update_membership_role(
    session: AsyncSession,
    membership_id: uuid.UUID,
    *,
    expected_role: str,
    new_role: str,
) -> bool:
    """Compare-and-swap the role of an active membership.

    Returns False when the row no longer holds ``expected_role`` or is no
    longer active.
    """
    result = await session.execute(
        update(StudioMembership)
        .where(
            StudioMembership.id == membership_id,
            StudioMembership.role == expected_role,
            StudioMembership.status == ACTIVE,
        )
        .values(role=new_role, updated_at=utcnow())
    )
    return result.rowcount == 1


async def update_membership_status(
    session: AsyncSession,
    membership_id: uuid.UUID,
    *,
    expected_status: str,
    new_status: str,
) -> bool:
    """Compare-and-swap the status of a membership."""
    result = await session.execute(
        update(StudioMembership)
        .where(
            StudioMembership.id == membership_id,
            StudioMembership.status == expected_status,
        )
        .values(status=new_status, updated_at=utcnow())
    )
    return result.rowcount == 1
