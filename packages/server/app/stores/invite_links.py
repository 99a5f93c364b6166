"""Invite link store: one reusable enrollment link per studio."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import insert_for
from app.models.base import utcnow
from app.models.invite_link import StudioInviteLink
from studiodesk_shared.schemas.common import MembershipRole


async def get_invite_link(
    session: AsyncSession, studio_id: uuid.UUID
) -> Optional[StudioInviteLink]:
    result = await session.execute(
        select(StudioInviteLink)
        .where(StudioInviteLink.studio_id == studio_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_invite_link_by_token_hash(
    session: AsyncSession, token_hash: str
) -> Optional[StudioInviteLink]:
    """Invite link for a token hash, enabled or not."""
    result = await session.execute(
        select(StudioInviteLink).where(StudioInviteLink.token_hash == token_hash)
    )
    return result.scalar_one_or_none()


async def upsert_invite_link(
    session: AsyncSession,
    studio_id: uuid.UUID,
    *,
    token_hash: str,
    is_enabled: bool = True,
) -> StudioInviteLink:
    """Create the studio's link or rotate its token."""
    stmt = insert_for(session, StudioInviteLink).values(
        id=uuid.uuid4(),
        studio_id=studio_id,
        token_hash=token_hash,
        default_role=MembershipRole.MEMBER.value,
        is_enabled=is_enabled,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["studio_id"],
        set_={
            "token_hash": stmt.excluded.token_hash,
            "is_enabled": stmt.excluded.is_enabled,
            "created_at": stmt.excluded.created_at,
        },
    )
    await session.execute(stmt)
    return await get_invite_link(session, studio_id)


async def set_enabled(
    session: AsyncSession, studio_id: uuid.UUID, is_enabled: bool
) -> Optional[StudioInviteLink]:
    link = await get_invite_link(session, studio_id)
    if link is None:
        return None
    link.is_enabled = is_enabled
    session.add(link)
    await session.flush()
    return link
