"""Team management schemas: members, invitations, invite links."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field

from .common import InvitationStatus, MembershipRole, MembershipStatus
from .studios import StudioSummary


class InviteSource(str, Enum):
    INVITATION = "invitation"
    INVITE_LINK = "invite_link"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RoleChangeRequest(BaseModel):
    role: MembershipRole


class InviteCreateRequest(BaseModel):
    """Invite a person to the current studio by e-mail."""
    email: EmailStr
    role: MembershipRole = MembershipRole.MEMBER
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=30)


class InviteResendRequest(BaseModel):
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=30)


class InviteLinkToggleRequest(BaseModel):
    is_enabled: bool


class AcceptInviteRequest(BaseModel):
    token: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    id: uuid.UUID  # membership id
    user_id: uuid.UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: MembershipRole
    status: MembershipStatus
    joined_at: datetime


class InvitationResponse(BaseModel):
    id: uuid.UUID
    studio_id: uuid.UUID
    email: str
    role: MembershipRole
    status: InvitationStatus
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class InviteCreateResponse(BaseModel):
    """Returned when creating or resending. The URL embeds the raw token, shown ONCE."""
    invitation: InvitationResponse
    invite_url: str


class InviteLinkResponse(BaseModel):
    is_enabled: bool
    default_role: MembershipRole = MembershipRole.MEMBER
    created_at: Optional[datetime] = None
    invite_url: Optional[str] = None  # Only present right after the token is (re)generated


class TeamResponse(BaseModel):
    members: List[MemberResponse]
    pending_invites: List[InvitationResponse] = Field(default_factory=list)
    invite_link: Optional[InviteLinkResponse] = None
    current_user_role: MembershipRole
    current_user_id: uuid.UUID


class InviteContextResponse(BaseModel):
    """What a token grants, as shown on the join page."""
    source: InviteSource
    role: MembershipRole
    studio: StudioSummary
    email: Optional[str] = None
    expires_at: Optional[datetime] = None


class AcceptInviteResponse(BaseModel):
    studio_id: uuid.UUID
    already_member: bool = False
