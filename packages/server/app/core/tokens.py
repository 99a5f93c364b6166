"""Opaque invite tokens: generation and one-way hashing."""

from __future__ import annotations

import hashlib
import secrets


def generate_token(nbytes: int = 32) -> str:
    """Cryptographically random URL-safe token (base64url, no padding)."""
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token. Only this value is ever persisted."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token_pair(nbytes: int = 32) -> tuple[str, str]:
    """Return (raw_token, token_hash)."""
    token = generate_token(nbytes)
    return token, hash_token(token)


def build_join_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/join?token={token}"
