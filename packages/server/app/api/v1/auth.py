"""
Authentication endpoints.

- Email/Password registration & login
- JWT session management (refresh, logout)
"""

from __future__ import annotations

import uuid

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    is_jwt_revoked,
    normalize_email,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.studio_ref import StudioRef, get_studio_ref
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def _start_session(response: Response, user: User) -> None:
    token, _jti = create_jwt(user_id=user.id, email=user.email)
    _set_session_cookies(response, token, generate_csrf_token())


# ---------------------------------------------------------------------------
# Email/Password Registration
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    message: str


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session.

    New users have no studio; ``GET /api/v1/access`` picks up any invitation
    addressed to them or reports ``no-studios``.
    """
    email = normalize_email(str(body.email))
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        id=uuid.uuid4(),
        email=email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    _start_session(response, user)
    log.info("user.registered", user_id=str(user.id), email=email)
    return AuthResponse(user_id=str(user.id), email=email, message="Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    email = normalize_email(str(body.email))
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    _start_session(response, user)
    log.info("auth.login_success", user_id=str(user.id), email=email)
    return AuthResponse(user_id=str(user.id), email=email, message="Login successful")


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/refresh")
async def refresh_session(request: Request, response: Response):
    """Refresh the current JWT session by issuing a new token."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="No active session")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    # Issue new JWT, revoke old one
    new_token, _new_jti = create_jwt(
        user_id=uuid.UUID(payload["sub"]),
        email=payload["email"],
    )
    if jti:
        await revoke_jwt(jti)

    _set_session_cookies(response, new_token, generate_csrf_token())
    return {"message": "Session refreshed"}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    studio_ref: StudioRef = Depends(get_studio_ref),
):
    """Invalidate the current session and forget the current studio."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            payload = decode_jwt(token)
            jti = payload.get("jti")
            if jti:
                await revoke_jwt(jti)
        except (jwt.PyJWTError, RedisError) as exc:
            # Token already invalid or revocation list unreachable; still clear cookies.
            log.info("auth.logout_revoke_skipped", error=type(exc).__name__)

    studio_ref.clear()
    studio_ref.apply(response)
    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}
