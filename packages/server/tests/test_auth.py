"""
Tests for Authentication.

Covers:
- Password hashing
- JWT creation, decoding, revocation
- Session cookie -> Identity resolution
- CSRF, security-header and request-context middleware
- /auth endpoints (register, login, logout)
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt as pyjwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_current_identity,
    hash_password,
    verify_password,
)
from app.core.middleware import (
    SECURITY_HEADERS,
    CSRFMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.studio_ref import STUDIO_COOKIE
from factories import make_user, studio_cookie_header, use_studio


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        assert hash_password("same") != hash_password("same")


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token, jti = create_jwt(user_id=uid, email="engineer@soundroom.dev")
        payload = decode_jwt(token)
        assert payload["sub"] == str(uid)
        assert payload["email"] == "engineer@soundroom.dev"
        assert payload["jti"] == jti

    def test_expired_jwt_raises(self):
        token, _ = create_jwt(
            user_id=uuid.uuid4(),
            email="engineer@soundroom.dev",
            expires_delta=timedelta(seconds=-1),
        )
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_jwt_raises(self):
        token, _ = create_jwt(user_id=uuid.uuid4(), email="engineer@soundroom.dev")
        header, payload, signature = token.split(".")
        middle = len(signature) // 2
        flipped = "A" if signature[middle] != "A" else "B"
        tampered = ".".join([header, payload, signature[:middle] + flipped + signature[middle + 1 :]])
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_jwt(tampered)


class TestCSRFToken:
    def test_generates_unique_tokens(self):
        t1 = generate_csrf_token()
        t2 = generate_csrf_token()
        assert t1 != t2
        assert len(t1) > 20


# ---------------------------------------------------------------------------
# Unit Tests: JWT Revocation (mocked Redis)
# ---------------------------------------------------------------------------

class TestJWTRevocation:
    @pytest.mark.asyncio
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.setex = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("app.core.auth.get_redis", AsyncMock(return_value=mock_redis)):
            from app.core.auth import is_jwt_revoked, revoke_jwt

            await revoke_jwt("test-jti-123")
            mock_redis.setex.assert_called_once_with("jwt:revoked:test-jti-123", 3600, "1")
            assert await is_jwt_revoked("test-jti-123") is True

    @pytest.mark.asyncio
    async def test_non_revoked_jwt(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=0)

        with patch("app.core.auth.get_redis", AsyncMock(return_value=mock_redis)):
            from app.core.auth import is_jwt_revoked

            assert await is_jwt_revoked("non-existent-jti") is False


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------

def _request(cookies: dict[str, str]) -> Request:
    cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(b"cookie", cookie_header.encode())] if cookies else [],
        }
    )


class TestCurrentIdentity:
    @pytest.mark.asyncio
    async def test_valid_session(self, session):
        user = await make_user(session, "Engineer@SoundRoom.dev")
        token, _ = create_jwt(user_id=user.id, email=user.email)
        request = _request({SESSION_COOKIE: token})

        with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)):
            identity = await get_current_identity(request, session)

        assert identity.id == user.id
        assert identity.email == "engineer@soundroom.dev"
        assert request.state.identity == identity

    @pytest.mark.asyncio
    async def test_no_cookie(self, session):
        assert await get_current_identity(_request({}), session) is None

    @pytest.mark.asyncio
    async def test_garbage_token(self, session):
        assert await get_current_identity(_request({SESSION_COOKIE: "nope"}), session) is None

    @pytest.mark.asyncio
    async def test_revoked_token(self, session):
        user = await make_user(session, "engineer@soundroom.dev")
        token, _ = create_jwt(user_id=user.id, email=user.email)

        with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=True)):
            identity = await get_current_identity(_request({SESSION_COOKIE: token}), session)

        assert identity is None

    @pytest.mark.asyncio
    async def test_deleted_user(self, session):
        token, _ = create_jwt(user_id=uuid.uuid4(), email="ghost@soundroom.dev")

        with patch("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False)):
            identity = await get_current_identity(_request({SESSION_COOKIE: token}), session)

        assert identity is None


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        """No session cookie = not a browser session, skip CSRF."""
        client = TestClient(self._make_app())
        resp = client.post("/test")
        assert resp.status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={SESSION_COOKIE: "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

    def test_post_with_matching_csrf_passes(self):
        csrf_token = "test-csrf-token"
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: csrf_token},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": csrf_token})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={SESSION_COOKIE: "some-jwt", CSRF_COOKIE: "token-a"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "token-b"})
        assert resp.status_code == 403


class TestRequestContextMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        return app

    def test_request_id_is_echoed(self):
        client = TestClient(self._make_app())
        resp = client.get("/test", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert len(resp.headers["X-Request-ID"]) == 32


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_register_starts_session(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "Engineer@SoundRoom.dev", "password": "long-enough", "full_name": "E"},
        )
        assert resp.status_code == 201
        assert resp.json()["email"] == "engineer@soundroom.dev"
        cookies = resp.headers.get_list("set-cookie")
        assert any(c.startswith(f"{SESSION_COOKIE}=") for c in cookies)
        assert any(c.startswith(f"{CSRF_COOKIE}=") for c in cookies)

    @pytest.mark.asyncio
    async def test_register_short_password(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "engineer@soundroom.dev", "password": "short"},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client, session):
        await make_user(session, "engineer@soundroom.dev")
        resp = await client.post(
            "/auth/register",
            json={"email": "engineer@soundroom.dev", "password": "long-enough"},
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_login(self, client, session):
        user = await make_user(session, "engineer@soundroom.dev")
        user.password_hash = hash_password("correct-horse")
        await session.commit()
        user_id = user.id

        ok = await client.post(
            "/auth/login",
            json={"email": "engineer@soundroom.dev", "password": "correct-horse"},
        )
        bad = await client.post(
            "/auth/login",
            json={"email": "engineer@soundroom.dev", "password": "wrong-horse"},
        )

        assert ok.status_code == 200
        assert ok.json()["user_id"] == str(user_id)
        assert bad.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_clears_session_and_studio(self, client):
        use_studio(client, uuid.uuid4())
        resp = await client.post("/auth/logout")

        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out"
        cleared = studio_cookie_header(resp)
        assert cleared is not None
        assert cleared.startswith(f'{STUDIO_COOKIE}=""')
        assert any(
            c.startswith(f'{SESSION_COOKIE}=""') for c in resp.headers.get_list("set-cookie")
        )
