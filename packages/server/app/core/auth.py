"""
Authentication for Studio Desk.

Supports:
- Email/Password login with bcrypt hashes
- JWT session cookie with a Redis revocation list
- Identity resolution dependencies for route handlers
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session, set_rls_context
from app.core.errors import ServiceException
from app.core.redis import get_redis
from app.models.user import User
from studiodesk_shared.schemas.common import ErrorCode

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "sd_session"
CSRF_COOKIE = "sd_csrf"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int | None = None) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    ttl = ttl_seconds or settings.jwt_expire_minutes * 60
    await redis.setex(f"jwt:revoked:{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""

    id: uuid.UUID
    email: str


async def get_current_identity(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Optional[Identity]:
    """Resolve the session cookie to an Identity, or None when signed out.

    Invalid, expired and revoked tokens all read as "signed out"; callers
    decide whether that is an error.
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        log.info("auth.session_invalid")
        return None

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        log.info("auth.session_revoked", jti=jti)
        return None

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        return None

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        return None

    await set_rls_context(session, user_id=user.id)
    identity = Identity(id=user.id, email=normalize_email(user.email))
    request.state.identity = identity
    return identity


async def require_identity(
    identity: Optional[Identity] = Depends(get_current_identity),
) -> Identity:
    """Any signed-in user can access this endpoint."""
    if identity is None:
        raise ServiceException(ErrorCode.AUTHENTICATION_REQUIRED, "You must be signed in.")
    return identity
