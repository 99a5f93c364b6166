"""Studio membership (join table, RLS-scoped)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class StudioMembership(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "studio_memberships"
    __table_args__ = (
        sa.UniqueConstraint("studio_id", "user_id", name="uq_studio_memberships_studio_user"),
    )

    studio_id: uuid.UUID = Field(foreign_key="studios.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False, default="member")  # owner | admin | member
    status: str = Field(nullable=False, default="active")  # active | pending | removed
    joined_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
