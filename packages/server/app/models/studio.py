"""Studio (tenant) model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Studio(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "studios"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    description: Optional[str] = None
    logo_url: Optional[str] = None
