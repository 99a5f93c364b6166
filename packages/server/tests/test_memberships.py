"""
Tests for the team roster, role changes and member removal.
"""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import update

from app.core.errors import Ok
from app.core.metrics import metrics
from app.models.membership import StudioMembership
from app.services import memberships as membership_service
from app.stores import memberships as membership_store
from factories import (
    add_member,
    identity_of,
    make_invitation,
    make_invite_link,
    make_studio,
    make_user,
)
from studiodesk_shared.schemas.common import ErrorCode, MembershipRole


@pytest_asyncio.fixture
async def team(session):
    """A studio with an owner, an admin and a member."""
    owner = await make_user(session, "owner@soundroom.dev", "Olive Owner")
    admin = await make_user(session, "admin@soundroom.dev", "Adam Admin")
    member = await make_user(session, "member@soundroom.dev", "Mia Member")
    studio = await make_studio(session, owner, "Sound Room")
    admin_m = await add_member(session, studio, admin, role="admin")
    member_m = await add_member(session, studio, member, role="member")
    owner_m = await membership_store.get_membership(session, studio.id, owner.id)
    return {
        "studio": studio,
        "owner": owner,
        "admin": admin,
        "member": member,
        "owner_m": owner_m,
        "admin_m": admin_m,
        "member_m": member_m,
    }


# ---------------------------------------------------------------------------
# Team roster
# ---------------------------------------------------------------------------

class TestGetTeam:
    @pytest.mark.asyncio
    async def test_owner_sees_invites_and_link(self, session, team):
        studio = team["studio"]
        await make_invitation(session, studio, "newcomer@soundroom.dev")
        await make_invite_link(session, studio)

        result = await membership_service.get_team(studio.id, identity_of(team["owner"]), session)

        assert isinstance(result, Ok)
        roster = result.value
        assert {m.email for m in roster.members} == {
            "owner@soundroom.dev",
            "admin@soundroom.dev",
            "member@soundroom.dev",
        }
        assert [inv.email for inv in roster.pending_invites] == ["newcomer@soundroom.dev"]
        assert roster.invite_link.is_enabled is True
        assert roster.invite_link.invite_url is None
        assert roster.current_user_role == MembershipRole.OWNER
        assert roster.current_user_id == team["owner"].id

    @pytest.mark.asyncio
    async def test_member_sees_roster_only(self, session, team):
        studio = team["studio"]
        await make_invitation(session, studio, "newcomer@soundroom.dev")
        await make_invite_link(session, studio)

        result = await membership_service.get_team(studio.id, identity_of(team["member"]), session)

        assert len(result.value.members) == 3
        assert result.value.pending_invites == []
        assert result.value.invite_link is None
        assert result.value.current_user_role == MembershipRole.MEMBER

    @pytest.mark.asyncio
    async def test_removed_members_are_hidden(self, session, team):
        gone = await make_user(session, "gone@soundroom.dev")
        await add_member(session, team["studio"], gone, status="removed")

        result = await membership_service.get_team(
            team["studio"].id, identity_of(team["owner"]), session
        )

        assert "gone@soundroom.dev" not in {m.email for m in result.value.members}

    @pytest.mark.asyncio
    async def test_outsider_is_not_a_member(self, session, team):
        outsider = await make_user(session, "outsider@elsewhere.dev")
        result = await membership_service.get_team(
            team["studio"].id, identity_of(outsider), session
        )
        assert result.code == ErrorCode.NOT_A_MEMBER

    @pytest.mark.asyncio
    async def test_no_current_studio(self, session, team):
        result = await membership_service.get_team(None, identity_of(team["owner"]), session)
        assert result.code == ErrorCode.NO_STUDIO


# ---------------------------------------------------------------------------
# Role change
# ---------------------------------------------------------------------------

class TestChangeMemberRole:
    @pytest.mark.asyncio
    async def test_owner_promotes_member(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["owner"]),
            team["member_m"].id,
            MembershipRole.ADMIN,
            session,
        )

        assert isinstance(result, Ok)
        assert result.value.role == "admin"
        assert metrics.get("role_changes_total") == 1

    @pytest.mark.asyncio
    async def test_admin_demotes_member_to_member_is_allowed(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["admin"]),
            team["member_m"].id,
            MembershipRole.MEMBER,
            session,
        )
        assert isinstance(result, Ok)

    @pytest.mark.asyncio
    async def test_owner_role_cannot_be_changed(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["admin"]),
            team["owner_m"].id,
            MembershipRole.MEMBER,
            session,
        )
        assert result.code == ErrorCode.CANNOT_CHANGE_OWNER

    @pytest.mark.asyncio
    async def test_member_cannot_change_roles(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["member"]),
            team["admin_m"].id,
            MembershipRole.MEMBER,
            session,
        )
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_admin_cannot_promote_to_owner(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["admin"]),
            team["member_m"].id,
            MembershipRole.OWNER,
            session,
        )
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_admin_cannot_change_own_role(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["admin"]),
            team["admin_m"].id,
            MembershipRole.MEMBER,
            session,
        )
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_target_in_other_studio(self, session, team):
        other_owner = await make_user(session, "other@mixlab.dev")
        other = await make_studio(session, other_owner, "Mix Lab")
        stranger_m = await add_member(session, other, team["member"])

        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["owner"]),
            stranger_m.id,
            MembershipRole.ADMIN,
            session,
        )
        assert result.code == ErrorCode.MEMBERSHIP_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_membership(self, session, team):
        result = await membership_service.change_member_role(
            team["studio"].id,
            identity_of(team["owner"]),
            uuid.uuid4(),
            MembershipRole.ADMIN,
            session,
        )
        assert result.code == ErrorCode.MEMBERSHIP_NOT_FOUND

    @pytest.mark.asyncio
    async def test_removed_target(self, session, team):
        gone = await make_user(session, "gone@soundroom.dev")
        gone_m = await add_member(session, team["studio"], gone, status="removed")

        result = await membership_service.change_member_role(
            team["studio"].id, identity_of(team["owner"]), gone_m.id, MembershipRole.ADMIN, session
        )
        assert result.code == ErrorCode.MEMBERSHIP_NOT_FOUND

    @pytest.mark.asyncio
    async def test_concurrent_change_is_a_conflict(self, session, team):
        real_update = membership_store.update_membership_role

        async def racing_update(session, membership_id, *, expected_role, new_role):
            # Another request changes the row between the read and the write.
            await session.execute(
                update(StudioMembership)
                .where(StudioMembership.id == membership_id)
                .values(role="admin")
            )
            return await real_update(
                session, membership_id, expected_role=expected_role, new_role=new_role
            )

        with patch.object(membership_store, "update_membership_role", racing_update):
            result = await membership_service.change_member_role(
                team["studio"].id,
                identity_of(team["owner"]),
                team["member_m"].id,
                MembershipRole.MEMBER,
                session,
            )

        assert result.code == ErrorCode.CONFLICT
        assert metrics.get("role_changes_total") == 0


class TestMembershipStoreCompareAndSwap:
    @pytest.mark.asyncio
    async def test_role_swap_requires_expected_role(self, session, team):
        membership_id = team["member_m"].id
        assert not await membership_store.update_membership_role(
            session, membership_id, expected_role="admin", new_role="member"
        )
        assert await membership_store.update_membership_role(
            session, membership_id, expected_role="member", new_role="admin"
        )
        refreshed = await membership_store.get_membership_by_id(session, membership_id)
        assert refreshed.role == "admin"

    @pytest.mark.asyncio
    async def test_role_swap_skips_inactive_rows(self, session, team):
        gone = await make_user(session, "gone@soundroom.dev")
        gone_m = await add_member(session, team["studio"], gone, status="removed")
        assert not await membership_store.update_membership_role(
            session, gone_m.id, expected_role="member", new_role="admin"
        )


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------

class TestRemoveMember:
    @pytest.mark.asyncio
    async def test_owner_removes_member(self, session, team):
        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["owner"]), team["member_m"].id, session
        )

        assert result.value.status == "removed"
        rows = await membership_store.list_active_memberships(session, team["member"].id)
        assert rows == []

    @pytest.mark.asyncio
    async def test_admin_cannot_remove(self, session, team):
        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["admin"]), team["member_m"].id, session
        )
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_owner_cannot_remove_self(self, session, team):
        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["owner"]), team["owner_m"].id, session
        )
        assert result.code == ErrorCode.CANNOT_REMOVE_SELF

    @pytest.mark.asyncio
    async def test_owner_cannot_remove_other_owner(self, session, team):
        co_owner = await make_user(session, "coowner@soundroom.dev")
        co_owner_m = await add_member(session, team["studio"], co_owner, role="owner")

        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["owner"]), co_owner_m.id, session
        )
        assert result.code == ErrorCode.CANNOT_REMOVE_OWNER

    @pytest.mark.asyncio
    async def test_already_removed(self, session, team):
        studio_id, owner = team["studio"].id, identity_of(team["owner"])
        await membership_service.remove_member(studio_id, owner, team["member_m"].id, session)

        again = await membership_service.remove_member(
            studio_id, owner, team["member_m"].id, session
        )
        assert again.code == ErrorCode.MEMBERSHIP_NOT_FOUND

    @pytest.mark.asyncio
    async def test_membership_of_other_studio(self, session, team):
        other_owner = await make_user(session, "other@mixlab.dev")
        other = await make_studio(session, other_owner, "Mix Lab")
        foreign_m = await add_member(session, other, team["member"])

        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["owner"]), foreign_m.id, session
        )
        assert result.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    @pytest.mark.asyncio
    async def test_unknown_membership(self, session, team):
        result = await membership_service.remove_member(
            team["studio"].id, identity_of(team["owner"]), uuid.uuid4(), session
        )
        assert result.code == ErrorCode.MEMBERSHIP_NOT_FOUND
