"""
Tests for current-studio resolution and the per-request StudioRef.
"""

import uuid
from dataclasses import dataclass

from fastapi import Response

from app.core.studio_ref import STUDIO_COOKIE, StudioRef
from app.services.studio_context import StudioContextResolution, resolve_studio_context


@dataclass
class FakeMembership:
    studio_id: uuid.UUID


A, B, C = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


class TestResolveStudioContext:
    def test_no_memberships(self):
        assert resolve_studio_context(A, []) == StudioContextResolution(None, False)
        assert resolve_studio_context(None, []) == StudioContextResolution(None, False)

    def test_ref_among_memberships_is_kept(self):
        memberships = [FakeMembership(B), FakeMembership(A)]
        assert resolve_studio_context(A, memberships) == StudioContextResolution(A, False)

    def test_stale_ref_falls_back_to_first_membership(self):
        memberships = [FakeMembership(B), FakeMembership(A)]
        assert resolve_studio_context(C, memberships) == StudioContextResolution(B, True)

    def test_missing_ref_falls_back_to_first_membership(self):
        memberships = [FakeMembership(C)]
        assert resolve_studio_context(None, memberships) == StudioContextResolution(C, True)

    def test_input_order_is_respected(self):
        forward = resolve_studio_context(None, [FakeMembership(A), FakeMembership(B)])
        backward = resolve_studio_context(None, [FakeMembership(B), FakeMembership(A)])
        assert forward.studio_id == A
        assert backward.studio_id == B


class TestStudioRef:
    def test_unchanged_ref_writes_nothing(self):
        ref = StudioRef(A)
        response = Response()
        ref.apply(response)
        assert ref.changed is False
        assert "set-cookie" not in response.headers

    def test_setting_same_value_is_not_a_change(self):
        ref = StudioRef(A)
        ref.set(A)
        assert ref.changed is False

    def test_set_is_visible_and_written(self):
        ref = StudioRef(A)
        ref.set(B)
        assert ref.get() == B
        response = Response()
        ref.apply(response)
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{STUDIO_COOKIE}={B}")
        assert "httponly" in cookie.lower()
        assert "samesite=lax" in cookie.lower()

    def test_clear_deletes_cookie(self):
        ref = StudioRef(A)
        ref.clear()
        assert ref.get() is None
        response = Response()
        ref.apply(response)
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f'{STUDIO_COOKIE}=""')
        assert "max-age=0" in cookie.lower()

    def test_clear_without_value_is_a_no_op(self):
        ref = StudioRef(None)
        ref.clear()
        assert ref.changed is False
