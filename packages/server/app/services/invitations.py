"""
Invitation service: issuing, resending, revoking and accepting invitations.

Two kinds of token lead into a studio: e-mail invitations (single use, carry
a role) and the studio's invite link (reusable, always ``member``). Both are
stored as SHA-256 hashes; the raw token only ever appears in the invite URL.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Identity, normalize_email
from app.core.config import get_settings
from app.core.database import set_rls_context
from app.core.errors import Err, Ok, Result, database_error
from app.core.metrics import metrics
from app.core.notifications import send_invite_email
from app.core.studio_ref import StudioRef
from app.core.tokens import build_join_url, generate_token_pair, hash_token
from app.models.base import utcnow
from app.models.invitation import StudioInvitation
from app.models.studio import Studio
from app.models.user import User
from app.services.memberships import require_active_membership
from app.services.rules import as_utc, is_invite_acceptable
from app.stores import invitations as invitation_store
from app.stores import invite_links as invite_link_store
from app.stores import memberships as membership_store
from studiodesk_shared.schemas.common import (
    INVITABLE_ROLES,
    ErrorCode,
    InvitationStatus,
    MembershipRole,
    MembershipStatus,
)
from studiodesk_shared.schemas.memberships import (
    AcceptInviteResponse,
    InvitationResponse,
    InviteContextResponse,
    InviteCreateRequest,
    InviteCreateResponse,
    InviteSource,
)
from studiodesk_shared.schemas.studios import PendingInviteItem, StudioSummary

log = structlog.get_logger()

INVITE_NOT_FOUND = Err(ErrorCode.INVITE_NOT_FOUND, "Invitation not found")


@dataclass(frozen=True)
class AcceptanceResult:
    studio_id: uuid.UUID
    already_member: bool
    # False when the membership was granted but the invitation could not be
    # flipped to accepted; the invitation then stays redeemable.
    invitation_marked: bool


@dataclass(frozen=True)
class InviteContext:
    source: InviteSource
    role: MembershipRole
    studio: Studio
    invitation: Optional[StudioInvitation] = None

    def to_response(self) -> InviteContextResponse:
        return InviteContextResponse(
            source=self.source,
            role=self.role,
            studio=StudioSummary.model_validate(self.studio),
            email=self.invitation.email if self.invitation else None,
            expires_at=self.invitation.expires_at if self.invitation else None,
        )


def _expiry(days: Optional[int]) -> datetime:
    return utcnow() + timedelta(days=days or get_settings().invite_ttl_days)


def _invite_url(token: str) -> str:
    return build_join_url(get_settings().public_base_url, token)


async def _notify(email: str, url: str, studio_id: uuid.UUID, session: AsyncSession) -> None:
    """Best-effort invite e-mail; never fails the caller."""
    studio = await session.get(Studio, studio_id)
    try:
        await send_invite_email(email, url, studio.name if studio else "")
    except Exception as exc:  # noqa: BLE001
        log.warning("invite.email_failed", email=email, error=str(exc))


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------

async def _enroll(
    studio_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str,
    session: AsyncSession,
) -> bool:
    """Make ``user_id`` an active member of ``studio_id``.

    Returns True if they already were (their role is left untouched).
    """
    existing = await membership_store.get_membership(session, studio_id, user_id)
    if existing is not None and existing.status == MembershipStatus.ACTIVE:
        return True
    await membership_store.upsert_membership(
        session, studio_id=studio_id, user_id=user_id, role=role
    )
    return False


async def accept_invitation(
    invitation: StudioInvitation,
    user_id: uuid.UUID,
    session: AsyncSession,
) -> Result[AcceptanceResult]:
    """Grant the invitation's membership, then mark the invitation accepted.

    The membership write is authoritative. Marking the invitation runs in its
    own savepoint; if it fails the acceptance still succeeds with
    ``invitation_marked=False``.
    """
    studio_id = invitation.studio_id
    invitation_id = invitation.id
    try:
        async with session.begin_nested():
            already_member = await _enroll(studio_id, user_id, invitation.role, session)
    except SQLAlchemyError as exc:
        log.error(
            "invite.membership_upsert_failed",
            studio_id=str(studio_id),
            user_id=str(user_id),
            invitation_id=str(invitation_id),
            operation="accept_invitation",
            error=type(exc).__name__,
        )
        return database_error("Failed to join the studio. Please try again.")

    invitation_marked = False
    try:
        async with session.begin_nested():
            invitation_marked = await invitation_store.mark_invitation_accepted(
                session, invitation_id
            )
            if not invitation_marked:
                # Already accepted by an earlier redemption counts as marked.
                current = await invitation_store.find_invitation_by_id(session, invitation_id)
                invitation_marked = (
                    current is not None and current.status == InvitationStatus.ACCEPTED
                )
    except SQLAlchemyError as exc:
        log.warning(
            "invite.mark_accepted_failed",
            studio_id=str(studio_id),
            user_id=str(user_id),
            invitation_id=str(invitation_id),
            error=type(exc).__name__,
        )
    if not invitation_marked:
        metrics.inc("invites_accepted_unmarked_total")

    metrics.inc("invites_accepted_total", source=InviteSource.INVITATION.value)
    log.info(
        "invite.accepted",
        studio_id=str(studio_id),
        user_id=str(user_id),
        invitation_id=str(invitation_id),
        already_member=already_member,
        invitation_marked=invitation_marked,
    )
    return Ok(
        AcceptanceResult(
            studio_id=studio_id,
            already_member=already_member,
            invitation_marked=invitation_marked,
        )
    )


async def list_pending_invites_for_email(
    identity: Identity, session: AsyncSession
) -> list[PendingInviteItem]:
    """Open invitations addressed to the caller, newest first."""
    rows = await invitation_store.find_pending_invitations_by_email(
        session, normalize_email(identity.email)
    )
    return [
        PendingInviteItem(
            id=inv.id,
            studio=StudioSummary.model_validate(studio),
            role=inv.role,
            expires_at=inv.expires_at,
        )
        for inv, studio in rows
    ]


async def accept_pending_invite_by_id(
    invitation_id: uuid.UUID,
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[AcceptInviteResponse]:
    """Accept one of the caller's open invitations (from the invite chooser)."""
    invitation = await invitation_store.find_invitation_by_id(session, invitation_id)
    if (
        invitation is None
        or invitation.email != normalize_email(identity.email)
        or not is_invite_acceptable(
            invitation.status, invitation.expires_at, invitation.accepted_at
        )
    ):
        return Err(ErrorCode.INVITE_NOT_FOUND, "Invitation not found or expired")

    result = await accept_invitation(invitation, identity.id, session)
    if isinstance(result, Err):
        return result
    studio_ref.set(result.value.studio_id)
    await set_rls_context(session, studio_id=result.value.studio_id)
    return Ok(
        AcceptInviteResponse(
            studio_id=result.value.studio_id,
            already_member=result.value.already_member,
        )
    )


# ---------------------------------------------------------------------------
# Token lookup & acceptance by token
# ---------------------------------------------------------------------------

async def get_invite_by_token(
    token: Optional[str], session: AsyncSession
) -> Optional[InviteContext]:
    """Resolve a raw token to what it grants, or None if it grants nothing now.

    E-mail invitations are checked first, then the studio invite link.
    """
    if not token or not token.strip():
        return None
    token_hash = hash_token(token.strip())

    invitation = await invitation_store.find_invitation_by_token_hash(session, token_hash)
    if invitation is not None and is_invite_acceptable(
        invitation.status, invitation.expires_at, invitation.accepted_at
    ):
        studio = await session.get(Studio, invitation.studio_id)
        if studio is None:
            return None
        return InviteContext(
            source=InviteSource.INVITATION,
            role=MembershipRole(invitation.role),
            studio=studio,
            invitation=invitation,
        )

    link = await invite_link_store.find_invite_link_by_token_hash(session, token_hash)
    if link is None or not link.is_enabled:
        return None
    studio = await session.get(Studio, link.studio_id)
    if studio is None:
        return None
    return InviteContext(source=InviteSource.INVITE_LINK, role=MembershipRole.MEMBER, studio=studio)


async def _explain_unusable_token(token: str, session: AsyncSession) -> Err:
    """Say why a token that resolved to nothing cannot be used."""
    token_hash = hash_token(token.strip())
    invitation = await invitation_store.find_invitation_by_token_hash(session, token_hash)
    if invitation is not None:
        if invitation.accepted_at is not None or invitation.status == InvitationStatus.ACCEPTED:
            return Err(ErrorCode.INVALID_INVITE_STATE, "This invitation has already been accepted")
        if as_utc(invitation.expires_at) <= utcnow():
            return Err(ErrorCode.INVITE_EXPIRED, "This invitation has expired")
        if invitation.status == InvitationStatus.REVOKED:
            return Err(ErrorCode.INVALID_INVITE_STATE, "This invitation has been revoked")
    link = await invite_link_store.find_invite_link_by_token_hash(session, token_hash)
    if link is not None and not link.is_enabled:
        return Err(ErrorCode.INVALID_INVITE_STATE, "This invite link is disabled")
    return Err(ErrorCode.INVITE_NOT_FOUND, "Invitation not found or invalid")


async def lookup_invite(token: str, session: AsyncSession) -> Result[InviteContextResponse]:
    context = await get_invite_by_token(token, session)
    if context is None:
        return await _explain_unusable_token(token, session)
    return Ok(context.to_response())


async def accept_invite_by_token(
    token: str,
    identity: Identity,
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[AcceptInviteResponse]:
    """Redeem an invitation or invite-link token for the caller."""
    context = await get_invite_by_token(token, session)
    if context is None:
        return await _explain_unusable_token(token, session)

    if context.source == InviteSource.INVITATION:
        invitation = context.invitation
        if invitation.email != normalize_email(identity.email):
            return Err(
                ErrorCode.EMAIL_MISMATCH,
                "This invitation is for a different email address",
            )
        result = await accept_invitation(invitation, identity.id, session)
        if isinstance(result, Err):
            return result
        studio_id = result.value.studio_id
        already_member = result.value.already_member
    else:
        studio_id = context.studio.id
        try:
            async with session.begin_nested():
                already_member = await _enroll(
                    studio_id, identity.id, MembershipRole.MEMBER.value, session
                )
        except SQLAlchemyError as exc:
            log.error(
                "invite_link.membership_upsert_failed",
                studio_id=str(studio_id),
                user_id=str(identity.id),
                operation="accept_invite_link",
                error=type(exc).__name__,
            )
            return database_error("Failed to join the studio. Please try again.")
        metrics.inc("invites_accepted_total", source=InviteSource.INVITE_LINK.value)
        log.info(
            "invite_link.accepted",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            already_member=already_member,
        )

    studio_ref.set(studio_id)
    await set_rls_context(session, studio_id=studio_id)
    return Ok(AcceptInviteResponse(studio_id=studio_id, already_member=already_member))


# ---------------------------------------------------------------------------
# Issuing
# ---------------------------------------------------------------------------

async def _email_is_active_member(
    studio_id: uuid.UUID, email: str, session: AsyncSession
) -> bool:
    result = await session.execute(select(User.id).where(User.email == email))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        return False
    membership = await membership_store.get_membership(session, studio_id, user_id)
    return membership is not None and membership.status == MembershipStatus.ACTIVE


async def create_studio_invite(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    req: InviteCreateRequest,
    session: AsyncSession,
) -> Result[InviteCreateResponse]:
    """Invite an e-mail address, or refresh the pending invite it already has."""
    email = normalize_email(str(req.email))
    role = MembershipRole(req.role)
    if role not in INVITABLE_ROLES:
        return Err(ErrorCode.VALIDATION_ERROR, "Owner role cannot be invited")

    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can create invitations",
        )
        if isinstance(actor, Err):
            return actor
        if await _email_is_active_member(studio_id, email, session):
            return Err(ErrorCode.ALREADY_MEMBER, "This person is already a member of the studio")

        token, token_hash = generate_token_pair()
        async with session.begin_nested():
            invitation, refreshed = await invitation_store.create_or_refresh_invitation(
                session,
                studio_id=studio_id,
                email=email,
                role=role.value,
                token_hash=token_hash,
                expires_at=_expiry(req.expires_in_days),
                invited_by=identity.id,
            )
    except SQLAlchemyError as exc:
        log.error(
            "invite.create_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            operation="create_studio_invite",
            error=type(exc).__name__,
        )
        return database_error()

    url = _invite_url(token)
    await _notify(email, url, studio_id, session)
    log.info(
        "invite.refreshed" if refreshed else "invite.created",
        studio_id=str(studio_id),
        invitation_id=str(invitation.id),
        invited_by=str(identity.id),
        role=role.value,
    )
    return Ok(
        InviteCreateResponse(
            invitation=InvitationResponse.model_validate(invitation),
            invite_url=url,
        )
    )


async def _load_studio_invitation(
    studio_id: uuid.UUID, invitation_id: uuid.UUID, session: AsyncSession
) -> Optional[StudioInvitation]:
    invitation = await invitation_store.find_invitation_by_id(session, invitation_id)
    if invitation is None or invitation.studio_id != studio_id:
        return None
    return invitation


async def resend_invite(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    invitation_id: uuid.UUID,
    session: AsyncSession,
    *,
    expires_in_days: Optional[int] = None,
) -> Result[InviteCreateResponse]:
    """Issue a fresh token and expiry for a pending or revoked invitation."""
    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can resend invitations",
        )
        if isinstance(actor, Err):
            return actor
        invitation = await _load_studio_invitation(studio_id, invitation_id, session)
        if invitation is None:
            return INVITE_NOT_FOUND
        if invitation.status == InvitationStatus.ACCEPTED or invitation.accepted_at is not None:
            return Err(
                ErrorCode.INVALID_INVITE_STATE,
                "This invitation has already been accepted",
            )
        if invitation.status != InvitationStatus.PENDING:
            newer = await invitation_store.find_pending_invitation_for_email(
                session, studio_id, invitation.email
            )
            if newer is not None and newer.id != invitation.id:
                return Err(
                    ErrorCode.INVALID_INVITE_STATE,
                    "A newer invitation for this e-mail is already pending",
                )

        token, token_hash = generate_token_pair()
        async with session.begin_nested():
            invitation.status = InvitationStatus.PENDING.value
            invitation.invited_by = identity.id
            invitation = await invitation_store.refresh_invitation_token(
                session,
                invitation,
                token_hash=token_hash,
                expires_at=_expiry(expires_in_days),
            )
    except SQLAlchemyError as exc:
        log.error(
            "invite.resend_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            invitation_id=str(invitation_id),
            operation="resend_invite",
            error=type(exc).__name__,
        )
        return database_error()

    url = _invite_url(token)
    await _notify(invitation.email, url, studio_id, session)
    log.info("invite.resent", studio_id=str(studio_id), invitation_id=str(invitation_id))
    return Ok(
        InviteCreateResponse(
            invitation=InvitationResponse.model_validate(invitation),
            invite_url=url,
        )
    )


async def revoke_invite(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    invitation_id: uuid.UUID,
    session: AsyncSession,
) -> Result[InvitationResponse]:
    """Revoke a pending invitation. Accepted and revoked ones are left alone."""
    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can revoke invitations",
        )
        if isinstance(actor, Err):
            return actor
        invitation = await _load_studio_invitation(studio_id, invitation_id, session)
        if invitation is None:
            return INVITE_NOT_FOUND
        if invitation.status != InvitationStatus.PENDING:
            return Err(
                ErrorCode.INVITE_NOT_FOUND,
                "Invitation is not pending or has already been processed",
            )
        revoked = await invitation_store.revoke_invitation(session, invitation_id)
        if not revoked:
            return Err(ErrorCode.CONFLICT, "This invitation changed. Reload and try again.")
        invitation = await invitation_store.find_invitation_by_id(session, invitation_id)
    except SQLAlchemyError as exc:
        log.error(
            "invite.revoke_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            invitation_id=str(invitation_id),
            operation="revoke_invite",
            error=type(exc).__name__,
        )
        return database_error()

    log.info("invite.revoked", studio_id=str(studio_id), invitation_id=str(invitation_id))
    return Ok(InvitationResponse.model_validate(invitation))
