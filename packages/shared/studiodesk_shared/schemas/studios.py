"""
Studio-related Pydantic schemas.

Covers: studio create/list/switch request & response bodies and the
access-resolution states returned to the client on every app entry.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import MembershipRole


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AccessState(str, Enum):
    READY = "ready"
    NO_STUDIOS = "no-studios"
    NEEDS_PICKER = "needs-picker"
    AMBIGUOUS_INVITES = "ambiguous-invites"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class StudioCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Studio display name")
    slug: Optional[str] = Field(
        None,
        min_length=2,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9_-]*[a-z0-9]$",
        description="URL-safe identifier; generated from the name when omitted",
    )
    description: Optional[str] = Field(None, max_length=2000)


class SwitchStudioRequest(BaseModel):
    studio_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class StudioSummary(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    logo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class StudioResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    owner_id: uuid.UUID
    description: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StudioListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: MembershipRole  # the requesting user's role in this studio
    is_current: bool = False


class StudioListResponse(BaseModel):
    data: list[StudioListItem]


class SwitchStudioResponse(BaseModel):
    studio_id: uuid.UUID


class PendingInviteItem(BaseModel):
    id: uuid.UUID
    studio: StudioSummary
    role: MembershipRole
    expires_at: datetime


class AccessResponse(BaseModel):
    """Outcome of resolving which studio the caller operates in."""
    state: AccessState
    studio_id: Optional[uuid.UUID] = None
    studios: list[StudioListItem] = Field(default_factory=list)
    invites: list[PendingInviteItem] = Field(default_factory=list)
    joined_via_invite: bool = False
