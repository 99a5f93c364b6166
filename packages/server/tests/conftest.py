"""
Shared fixtures: an in-memory SQLite database and an API client.

pysqlite's own transaction handling breaks SAVEPOINT, so the engine takes
over BEGIN itself (see the SQLAlchemy SQLite dialect docs).
"""

import os

os.environ.setdefault("SD_ENVIRONMENT", "test")
os.environ.setdefault("SD_LOG_FORMAT", "text")

from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  registers tables on SQLModel.metadata
from app.core.auth import Identity, get_current_identity
from app.core.database import get_session
from app.core.metrics import metrics
from app.main import app as fastapi_app
from app.models.user import User
from factories import identity_of


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class AuthState:
    """Who the test client is signed in as (None means anonymous)."""

    def __init__(self):
        self.identity: Optional[Identity] = None

    def sign_in(self, user: User) -> None:
        self.identity = identity_of(user)

    def sign_out(self) -> None:
        self.identity = None


@pytest.fixture
def auth_state() -> AuthState:
    return AuthState()


@pytest_asyncio.fixture
async def client(session, auth_state):
    async def _session_override():
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    async def _identity_override():
        return auth_state.identity

    fastapi_app.dependency_overrides[get_session] = _session_override
    fastapi_app.dependency_overrides[get_current_identity] = _identity_override
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()

