"""
Invite link service: the studio-wide, reusable enrollment link.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity
from app.core.config import get_settings
from app.core.errors import Err, Ok, Result, database_error
from app.core.tokens import build_join_url, generate_token_pair
from app.models.invite_link import StudioInviteLink
from app.services.memberships import require_active_membership
from app.stores import invite_links as invite_link_store
from studiodesk_shared.schemas.memberships import InviteLinkResponse

log = structlog.get_logger()


def _response(link: Optional[StudioInviteLink], token: Optional[str] = None) -> InviteLinkResponse:
    if link is None:
        return InviteLinkResponse(is_enabled=False)
    return InviteLinkResponse(
        is_enabled=link.is_enabled,
        default_role=link.default_role,
        created_at=link.created_at,
        invite_url=build_join_url(get_settings().public_base_url, token) if token else None,
    )


async def toggle_invite_link(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    is_enabled: bool,
    session: AsyncSession,
) -> Result[InviteLinkResponse]:
    """Enable or disable the link. Enabling a studio with no link creates one."""
    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can manage invite links",
        )
        if isinstance(actor, Err):
            return actor

        existing = await invite_link_store.get_invite_link(session, studio_id)
        if existing is None and is_enabled:
            token, token_hash = generate_token_pair()
            link = await invite_link_store.upsert_invite_link(
                session, studio_id, token_hash=token_hash, is_enabled=True
            )
            log.info("invite_link.created", studio_id=str(studio_id), user_id=str(identity.id))
            return Ok(_response(link, token))
        if existing is None or existing.is_enabled == is_enabled:
            return Ok(_response(existing))

        link = await invite_link_store.set_enabled(session, studio_id, is_enabled)
    except SQLAlchemyError as exc:
        log.error(
            "invite_link.toggle_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            operation="toggle_invite_link",
            error=type(exc).__name__,
        )
        return database_error()

    log.info(
        "invite_link.enabled" if is_enabled else "invite_link.disabled",
        studio_id=str(studio_id),
        user_id=str(identity.id),
    )
    return Ok(_response(link))


async def reset_invite_link(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    session: AsyncSession,
) -> Result[InviteLinkResponse]:
    """Rotate the link token (invalidating the old URL) and enable it."""
    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can reset invite links",
        )
        if isinstance(actor, Err):
            return actor
        token, token_hash = generate_token_pair()
        link = await invite_link_store.upsert_invite_link(
            session, studio_id, token_hash=token_hash, is_enabled=True
        )
    except SQLAlchemyError as exc:
        log.error(
            "invite_link.reset_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            operation="reset_invite_link",
            error=type(exc).__name__,
        )
        return database_error()

    log.info("invite_link.reset", studio_id=str(studio_id), user_id=str(identity.id))
    return Ok(_response(link, token))
