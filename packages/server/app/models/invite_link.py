"""Reusable, toggleable studio invite link (one per studio)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class StudioInviteLink(UUIDMixin, SQLModel, table=True):
    __tablename__ = "studio_invite_links"

    studio_id: uuid.UUID = Field(foreign_key="studios.id", nullable=False, unique=True)
    token_hash: str = Field(nullable=False, unique=True)
    default_role: str = Field(nullable=False, default="member")
    is_enabled: bool = Field(nullable=False, default=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
