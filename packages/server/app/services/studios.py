"""
Studio service: creating studios and choosing the caller's current studio.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Identity
from app.core.database import set_rls_context
from app.core.errors import Err, Ok, Result, database_error
from app.core.studio_ref import StudioRef
from app.models.base import utcnow
from app.models.membership import StudioMembership
from app.models.studio import Studio
from app.services.studio_context import resolve_studio_context
from app.stores import memberships as membership_store
from studiodesk_shared.schemas.common import ErrorCode, MembershipRole, MembershipStatus
from studiodesk_shared.schemas.studios import StudioCreateRequest, StudioListItem

log = structlog.get_logger()

SLUG_ATTEMPTS = 10


def generate_slug(text: str) -> str:
    """URL-safe slug: "My Music Studio" -> "my-music-studio"."""
    slug = text.lower().strip()
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-") or "studio"


async def _slug_taken(slug: str, session: AsyncSession) -> bool:
    result = await session.execute(select(Studio.id).where(Studio.slug == slug))
    return result.scalar_one_or_none() is not None


async def unique_slug(name: str, session: AsyncSession) -> str:
    """Slug from ``name``, suffixed -1..-10 on collision, then with a timestamp."""
    base = generate_slug(name)
    candidate = base
    for counter in range(1, SLUG_ATTEMPTS + 1):
        if not await _slug_taken(candidate, session):
            return candidate
        candidate = f"{base}-{counter}"
    if not await _slug_taken(candidate, session):
        return candidate
    return f"{base}-{int(time.time() * 1000)}"


# ---------------------------------------------------------------------------
# Listing & creation
# ---------------------------------------------------------------------------

async def list_user_studios(
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> list[StudioListItem]:
    """Studios the caller is an active member of, newest first."""
    rows = await membership_store.list_active_memberships(session, identity.id)
    resolution = resolve_studio_context(studio_ref.get(), [m for m, _ in rows])
    current = resolution.studio_id if not resolution.needs_auto_select else None
    return [
        StudioListItem(
            id=studio.id,
            name=studio.name,
            slug=studio.slug,
            role=membership.role,
            is_current=studio.id == current,
        )
        for membership, studio in rows
    ]


async def create_studio(
    req: StudioCreateRequest,
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[Studio]:
    """Create a studio owned by the caller and make it their current studio."""
    name = req.name.strip()
    if not name:
        return Err(ErrorCode.VALIDATION_ERROR, "Studio name is required")

    slug: Optional[str] = None
    try:
        if req.slug:
            slug = req.slug.lower().strip()
            if await _slug_taken(slug, session):
                return Err(ErrorCode.VALIDATION_ERROR, "A studio with this slug already exists")
        else:
            slug = await unique_slug(name, session)

        async with session.begin_nested():
            studio = Studio(
                name=name,
                slug=slug,
                owner_id=identity.id,
                description=(req.description or "").strip() or None,
            )
            session.add(studio)
            await session.flush()
            session.add(
                StudioMembership(
                    studio_id=studio.id,
                    user_id=identity.id,
                    role=MembershipRole.OWNER.value,
                    status=MembershipStatus.ACTIVE.value,
                    joined_at=utcnow(),
                )
            )
            await session.flush()
    except SQLAlchemyError as exc:
        log.error(
            "studio.create_failed",
            user_id=str(identity.id),
            slug=slug,
            operation="create_studio",
            error=type(exc).__name__,
        )
        return database_error("Failed to create studio. Please try again.")

    studio_ref.set(studio.id)
    await set_rls_context(session, user_id=identity.id, studio_id=studio.id)
    log.info("studio.created", studio_id=str(studio.id), slug=slug, owner=str(identity.id))
    return Ok(studio)


# ---------------------------------------------------------------------------
# Current studio
# ---------------------------------------------------------------------------

async def switch_studio(
    studio_id: uuid.UUID,
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[uuid.UUID]:
    """Point the caller's current-studio reference at ``studio_id``."""
    membership = await membership_store.get_membership(session, studio_id, identity.id)
    if membership is None or membership.status != MembershipStatus.ACTIVE:
        if await session.get(Studio, studio_id) is None:
            return Err(ErrorCode.STUDIO_NOT_FOUND, "Studio not found")
        return Err(ErrorCode.NOT_A_MEMBER, "You are not a member of this studio")

    studio_ref.set(studio_id)
    await set_rls_context(session, studio_id=studio_id)
    log.info("studio.switched", studio_id=str(studio_id), user_id=str(identity.id))
    return Ok(studio_id)


def _pick_preferred(rows: list[tuple[StudioMembership, Studio]]) -> Optional[uuid.UUID]:
    for role in (MembershipRole.OWNER, MembershipRole.ADMIN):
        for membership, studio in rows:
            if membership.role == role:
                return studio.id
    return rows[0][1].id if rows else None


async def auto_select_studio(
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[uuid.UUID]:
    """Select a studio for the caller, preferring owner, then admin, then any."""
    rows = await membership_store.list_active_memberships(session, identity.id)
    studio_id = _pick_preferred(rows)
    if studio_id is None:
        return Err(ErrorCode.VALIDATION_ERROR, "User has no studios")
    return await switch_studio(studio_id, identity, studio_ref, session)
