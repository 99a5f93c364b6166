"""
Database connection, session management and row-level security context.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context():
    """Context manager for use outside of FastAPI request lifecycle."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


async def set_rls_context(
    session: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
    studio_id: Optional[uuid.UUID] = None,
) -> None:
    """Set the GUCs the RLS policies read, for the current transaction.

    Best-effort: the caller has already authorized the request, so a failure
    here is logged and the request continues.
    """
    if dialect_name(session) != "postgresql":
        return
    try:
        async with session.begin_nested():
            if user_id is not None:
                await session.execute(
                    text("SELECT set_config('app.current_user_id', :value, true)"),
                    {"value": str(user_id)},
                )
            if studio_id is not None:
                await session.execute(
                    text("SELECT set_config('app.current_studio_id', :value, true)"),
                    {"value": str(studio_id)},
                )
    except SQLAlchemyError as exc:
        log.warning(
            "rls.context_failed",
            user_id=str(user_id) if user_id else None,
            studio_id=str(studio_id) if studio_id else None,
            error=type(exc).__name__,
        )


def insert_for(session: AsyncSession, model):
    """Dialect-specific INSERT supporting ``on_conflict_do_update``."""
    if dialect_name(session) == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(model)
