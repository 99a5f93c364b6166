"""
Membership service: team roster, role changes and member removal.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity
from app.core.database import set_rls_context
from app.core.errors import Err, Ok, Result, database_error
from app.core.metrics import metrics
from app.models.membership import StudioMembership
from app.services.rules import RoleChangeDenial, as_role, can_change_member_role
from app.stores import invitations as invitation_store
from app.stores import invite_links as invite_link_store
from app.stores import memberships as membership_store
from studiodesk_shared.schemas.common import (
    PRIVILEGED_ROLES,
    ErrorCode,
    MembershipRole,
    MembershipStatus,
)
from studiodesk_shared.schemas.memberships import (
    InvitationResponse,
    InviteLinkResponse,
    MemberResponse,
    TeamResponse,
)

log = structlog.get_logger()

NO_STUDIO = Err(ErrorCode.NO_STUDIO, "No studio selected")
NOT_A_MEMBER = Err(ErrorCode.NOT_A_MEMBER, "You are not a member of this studio")


async def require_active_membership(
    studio_id: Optional[uuid.UUID],
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    privileged: bool = False,
    denied_message: str = "Only owners and admins can do this",
    for_update: bool = False,
) -> Result[StudioMembership]:
    """Load the caller's active membership in ``studio_id``.

    With ``privileged`` the caller must also be an owner or admin.
    """
    if studio_id is None:
        return NO_STUDIO
    await set_rls_context(session, user_id=user_id, studio_id=studio_id)
    membership = await membership_store.get_membership(
        session, studio_id, user_id, for_update=for_update
    )
    if membership is None or membership.status != MembershipStatus.ACTIVE:
        return NOT_A_MEMBER
    if privileged and as_role(membership.role) not in PRIVILEGED_ROLES:
        return Err(ErrorCode.INSUFFICIENT_PERMISSIONS, denied_message)
    return Ok(membership)


# ---------------------------------------------------------------------------
# Team roster
# ---------------------------------------------------------------------------

async def get_team(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    session: AsyncSession,
) -> Result[TeamResponse]:
    """Active members; outstanding invites and link state for owners/admins only."""
    try:
        actor = await require_active_membership(studio_id, identity.id, session)
        if isinstance(actor, Err):
            return actor
        role = MembershipRole(actor.value.role)

        rows = await membership_store.list_studio_members(session, studio_id)
        members = [
            MemberResponse(
                id=m.id,
                user_id=m.user_id,
                email=user.email,
                full_name=user.full_name,
                role=m.role,
                status=m.status,
                joined_at=m.joined_at or m.created_at,
            )
            for m, user in rows
        ]

        pending: list[InvitationResponse] = []
        link_info: Optional[InviteLinkResponse] = None
        if role in PRIVILEGED_ROLES:
            invites = await invitation_store.list_pending_for_studio(session, studio_id)
            pending = [InvitationResponse.model_validate(inv) for inv in invites]
            link = await invite_link_store.get_invite_link(session, studio_id)
            if link is not None:
                link_info = InviteLinkResponse(
                    is_enabled=link.is_enabled,
                    default_role=link.default_role,
                    created_at=link.created_at,
                )
    except SQLAlchemyError as exc:
        log.error(
            "team.load_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            operation="get_team",
            error=type(exc).__name__,
        )
        return database_error()

    return Ok(
        TeamResponse(
            members=members,
            pending_invites=pending,
            invite_link=link_info,
            current_user_role=role,
            current_user_id=identity.id,
        )
    )


# ---------------------------------------------------------------------------
# Role change
# ---------------------------------------------------------------------------

async def change_member_role(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    membership_id: uuid.UUID,
    next_role: MembershipRole,
    session: AsyncSession,
) -> Result[StudioMembership]:
    """Change a member's role.

    Actor and target rows are re-read (locked on PostgreSQL) and the write is a
    compare-and-swap on the role just read, so a concurrent change turns into
    a CONFLICT instead of a lost update.
    """
    try:
        actor = await require_active_membership(
            studio_id,
            identity.id,
            session,
            privileged=True,
            denied_message="Only owners and admins can change roles",
            for_update=True,
        )
        if isinstance(actor, Err):
            return actor
        actor_membership = actor.value

        target = await membership_store.get_membership_by_id(
            session, membership_id, for_update=True
        )
        if target is None or target.studio_id != studio_id:
            return Err(ErrorCode.MEMBERSHIP_NOT_FOUND, "Membership not found in this studio")
        if target.status != MembershipStatus.ACTIVE:
            return Err(ErrorCode.MEMBERSHIP_NOT_FOUND, "Membership is not active")

        decision = can_change_member_role(
            actor_role=actor_membership.role,
            target_role=target.role,
            target_is_self=target.user_id == identity.id,
            next_role=next_role,
        )
        if not decision.allowed:
            log.info(
                "membership.role_change_denied",
                studio_id=str(studio_id),
                actor_id=str(identity.id),
                membership_id=str(membership_id),
                reason=decision.reason.value,
            )
            if decision.reason == RoleChangeDenial.TARGET_OWNER:
                return Err(ErrorCode.CANNOT_CHANGE_OWNER, "Owner role cannot be changed here")
            return Err(
                ErrorCode.INSUFFICIENT_PERMISSIONS,
                "You do not have permission to change this role",
            )

        previous_role = target.role
        swapped = await membership_store.update_membership_role(
            session,
            target.id,
            expected_role=previous_role,
            new_role=MembershipRole(next_role).value,
        )
        if not swapped:
            return Err(
                ErrorCode.CONFLICT,
                "This membership changed while you were editing it. Reload and try again.",
            )
        updated = await membership_store.get_membership_by_id(session, target.id)
    except SQLAlchemyError as exc:
        log.error(
            "membership.role_change_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            membership_id=str(membership_id),
            operation="change_member_role",
            error=type(exc).__name__,
        )
        return database_error()

    metrics.inc("role_changes_total")
    log.info(
        "membership.role_changed",
        studio_id=str(studio_id),
        actor_id=str(identity.id),
        membership_id=str(membership_id),
        from_role=previous_role,
        to_role=MembershipRole(next_role).value,
    )
    return Ok(updated)


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------

async def remove_member(
    studio_id: Optional[uuid.UUID],
    identity: Identity,
    membership_id: uuid.UUID,
    session: AsyncSession,
) -> Result[StudioMembership]:
    """Soft-remove a member. Owners only; owners cannot be removed."""
    try:
        actor = await require_active_membership(
            studio_id, identity.id, session, for_update=True
        )
        if isinstance(actor, Err):
            return actor
        if actor.value.role != MembershipRole.OWNER:
            return Err(ErrorCode.INSUFFICIENT_PERMISSIONS, "Only owners can remove members")

        target = await membership_store.get_membership_by_id(
            session, membership_id, for_update=True
        )
        if target is None:
            return Err(ErrorCode.MEMBERSHIP_NOT_FOUND, "Membership not found")
        if target.studio_id != studio_id:
            return Err(
                ErrorCode.INSUFFICIENT_PERMISSIONS,
                "You do not have permission to remove this member",
            )
        if target.user_id == identity.id:
            return Err(ErrorCode.CANNOT_REMOVE_SELF, "You cannot remove yourself from the studio")
        if target.role == MembershipRole.OWNER:
            return Err(ErrorCode.CANNOT_REMOVE_OWNER, "Cannot remove another owner")
        if target.status != MembershipStatus.ACTIVE:
            return Err(ErrorCode.MEMBERSHIP_NOT_FOUND, "Membership is not active")

        removed = await membership_store.update_membership_status(
            session,
            target.id,
            expected_status=MembershipStatus.ACTIVE.value,
            new_status=MembershipStatus.REMOVED.value,
        )
        if not removed:
            return Err(ErrorCode.CONFLICT, "This membership changed. Reload and try again.")
        updated = await membership_store.get_membership_by_id(session, target.id)
    except SQLAlchemyError as exc:
        log.error(
            "membership.remove_failed",
            studio_id=str(studio_id),
            user_id=str(identity.id),
            membership_id=str(membership_id),
            operation="remove_member",
            error=type(exc).__name__,
        )
        return database_error()

    log.info(
        "membership.removed",
        studio_id=str(studio_id),
        actor_id=str(identity.id),
        membership_id=str(membership_id),
    )
    return Ok(updated)
