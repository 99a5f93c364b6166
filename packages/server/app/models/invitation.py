"""E-mail targeted, single-use studio invitation."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin

_PENDING = sa.text("status = 'pending'")


class StudioInvitation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "studio_invitations"
    __table_args__ = (
        # One pending invitation per (studio, email); email is stored lower-cased.
        sa.Index(
            "uq_studio_invitations_pending_email",
            "studio_id",
            "email",
            unique=True,
            postgresql_where=_PENDING,
            sqlite_where=_PENDING,
        ),
    )

    studio_id: uuid.UUID = Field(foreign_key="studios.id", nullable=False, index=True)
    invited_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    email: str = Field(nullable=False, index=True)
    role: str = Field(nullable=False, default="member")  # admin | member
    token_hash: str = Field(nullable=False, unique=True)
    status: str = Field(nullable=False, default="pending")  # pending | accepted | revoked
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    accepted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
