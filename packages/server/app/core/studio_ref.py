"""
Current-studio reference carried in the ``sd_current_studio`` cookie.

The cookie is not authoritative: services receive a ``StudioRef`` per request,
revalidate it against memberships, and record changes on it. Route handlers
write those changes back with ``apply(response)``.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request, Response

from app.core.config import get_settings

settings = get_settings()

STUDIO_COOKIE = "sd_current_studio"

_UNCHANGED = object()


def _parse(raw: Optional[str]) -> Optional[uuid.UUID]:
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None


class StudioRef:
    """Per-request view of the current-studio cookie."""

    def __init__(self, value: Optional[uuid.UUID] = None):
        self._value = value
        self._pending = _UNCHANGED

    @classmethod
    def from_request(cls, request: Request) -> "StudioRef":
        return cls(_parse(request.cookies.get(STUDIO_COOKIE)))

    def get(self) -> Optional[uuid.UUID]:
        if self._pending is not _UNCHANGED:
            return self._pending
        return self._value

    def set(self, studio_id: uuid.UUID) -> None:
        self._pending = studio_id

    def clear(self) -> None:
        self._pending = None

    @property
    def changed(self) -> bool:
        return self._pending is not _UNCHANGED and self._pending != self._value

    def apply(self, response: Response) -> None:
        """Write a pending set/clear onto the outgoing response."""
        if not self.changed:
            return
        if self._pending is None:
            response.delete_cookie(STUDIO_COOKIE, path="/")
            return
        response.set_cookie(
            key=STUDIO_COOKIE,
            value=str(self._pending),
            httponly=True,
            secure=not settings.debug,
            samesite="lax",
            path="/",
            max_age=settings.studio_cookie_max_age_days * 24 * 60 * 60,
        )


async def get_studio_ref(request: Request) -> StudioRef:
    """FastAPI dependency: the caller's current-studio reference."""
    return StudioRef.from_request(request)
