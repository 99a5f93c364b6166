"""
Pure authorization rules for invitations and membership roles.

No I/O here: callers load rows and pass plain values in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from studiodesk_shared.schemas.common import (
    PRIVILEGED_ROLES,
    InvitationStatus,
    MembershipRole,
)

Timestamp = Union[datetime, str, None]


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """``datetime`` or ISO-8601 string to an aware UTC datetime; None if unparsable."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except (ValueError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Invite eligibility
# ---------------------------------------------------------------------------

def is_invite_acceptable(
    status: Union[InvitationStatus, str],
    expires_at: Timestamp,
    accepted_at: Timestamp,
    now: Optional[datetime] = None,
) -> bool:
    """True only for a pending, never-accepted invitation that has not expired."""
    if status != InvitationStatus.PENDING:
        return False
    if accepted_at is not None:
        return False
    expiry = parse_timestamp(expires_at)
    if expiry is None:
        return False
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    return expiry > now


# ---------------------------------------------------------------------------
# Role change authorization
# ---------------------------------------------------------------------------

class RoleChangeDenial(str, Enum):
    ACTOR_NOT_PRIVILEGED = "actor-not-privileged"
    TARGET_OWNER = "target-owner"
    SELF_CHANGE_NOT_ALLOWED = "self-change-not-allowed"
    ADMIN_CANNOT_PROMOTE_OWNER = "admin-cannot-promote-owner"


@dataclass(frozen=True)
class RoleChangeDecision:
    allowed: bool
    reason: Optional[RoleChangeDenial] = None


ALLOWED = RoleChangeDecision(allowed=True)


def _deny(reason: RoleChangeDenial) -> RoleChangeDecision:
    return RoleChangeDecision(allowed=False, reason=reason)


def as_role(value: Optional[Union[MembershipRole, str]]) -> Optional[MembershipRole]:
    """Coerce a stored role string to the enum; unknown values become None."""
    if value is None:
        return None
    try:
        return MembershipRole(value)
    except ValueError:
        return None


def can_change_member_role(
    actor_role: Optional[Union[MembershipRole, str]],
    target_role: Union[MembershipRole, str],
    target_is_self: bool,
    next_role: Union[MembershipRole, str],
) -> RoleChangeDecision:
    """Decide whether ``actor_role`` may move a ``target_role`` member to ``next_role``.

    Checks run in order and the first failing one wins.
    """
    actor_role = as_role(actor_role)
    if actor_role is None or actor_role not in PRIVILEGED_ROLES:
        return _deny(RoleChangeDenial.ACTOR_NOT_PRIVILEGED)
    if target_role == MembershipRole.OWNER:
        return _deny(RoleChangeDenial.TARGET_OWNER)
    if target_is_self and actor_role != MembershipRole.OWNER:
        return _deny(RoleChangeDenial.SELF_CHANGE_NOT_ALLOWED)
    if actor_role == MembershipRole.ADMIN and next_role == MembershipRole.OWNER:
        return _deny(RoleChangeDenial.ADMIN_CANNOT_PROMOTE_OWNER)
    return ALLOWED
