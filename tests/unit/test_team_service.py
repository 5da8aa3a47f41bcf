"""Unit tests for TeamService

Runs against the SQLite test database with an in-process gateway.
"""

import pytest
import pytest_asyncio
from uuid import uuid4

from teamchat.errors import (
    AccessDeniedError,
    ConcurrentModificationError,
    DuplicateMemberError,
    MemberNotFoundError,
    NotOwnerError,
    OwnerRemovalError,
    TeamNotFoundError,
    TargetNotMemberError,
    ValidationError,
)
from teamchat.realtime.rooms import team_room
from teamchat.services import TeamService

pytestmark = pytest.mark.unit


@pytest.fixture
def service(test_db, publisher):
    return TeamService(test_db, publisher)


@pytest_asyncio.fixture
async def team(service, owner_id, admin_id, member_id):
    """Team with one owner, one admin and one member."""
    team = await service.create_team(owner_id, "Platform Team", "Infra and tooling")
    await service.add_member(team.id, owner_id, admin_id, "admin")
    await service.add_member(team.id, owner_id, member_id)
    return team


def roles(team):
    return {m.user_id: m.role for m in team.members}


class TestCreateTeam:
    """Test team creation"""

    @pytest.mark.asyncio
    async def test_creator_becomes_owner(self, service, owner_id):
        team = await service.create_team(owner_id, "  Platform Team  ")

        assert team.name == "Platform Team"
        assert team.owner_id == owner_id
        assert roles(team) == {owner_id: "owner"}
        assert team.version == 1

    @pytest.mark.asyncio
    async def test_name_length_is_validated(self, service, owner_id):
        with pytest.raises(ValidationError):
            await service.create_team(owner_id, "ab")
        with pytest.raises(ValidationError):
            await service.create_team(owner_id, "x" * 101)

    @pytest.mark.asyncio
    async def test_creator_is_notified(self, service, owner_id, listen):
        socket = await listen(owner_id)

        team = await service.create_team(owner_id, "Platform Team")

        assert socket.events("team:invited")[0]["data"]["id"] == str(team.id)


class TestReadTeams:
    """Test listing and visibility"""

    @pytest.mark.asyncio
    async def test_list_teams_for_member(self, service, team, member_id, outsider_id):
        assert [t.id for t in await service.list_teams(member_id)] == [team.id]
        assert await service.list_teams(outsider_id) == []

    @pytest.mark.asyncio
    async def test_outsider_cannot_view(self, service, team, outsider_id):
        with pytest.raises(AccessDeniedError):
            await service.get_team(team.id, outsider_id)

    @pytest.mark.asyncio
    async def test_unknown_team(self, service, owner_id):
        with pytest.raises(TeamNotFoundError):
            await service.get_team(uuid4(), owner_id)


class TestUpdateAndDelete:
    """Test team updates and soft delete"""

    @pytest.mark.asyncio
    async def test_admin_updates_team(self, service, team, admin_id, listen):
        socket = await listen(uuid4(), team_room(team.id))

        updated = await service.update_team(team.id, admin_id, name="Platform Guild")

        assert updated.name == "Platform Guild"
        assert socket.events("team:updated")[0]["data"]["name"] == "Platform Guild"

    @pytest.mark.asyncio
    async def test_member_cannot_update(self, service, team, member_id):
        with pytest.raises(AccessDeniedError):
            await service.update_team(team.id, member_id, name="Hijacked")

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self, service, team, owner_id, admin_id):
        with pytest.raises(NotOwnerError):
            await service.delete_team(team.id, admin_id)

        await service.delete_team(team.id, owner_id)

        with pytest.raises(TeamNotFoundError):
            await service.get_team(team.id, owner_id)
        assert await service.list_teams(owner_id) == []


class TestMembership:
    """Test add / remove / role change"""

    @pytest.mark.asyncio
    async def test_add_member_notifies_team_and_user(self, service, team, owner_id, listen):
        new_user = uuid4()
        team_socket = await listen(uuid4(), team_room(team.id))
        user_socket = await listen(new_user)

        await service.add_member(team.id, owner_id, new_user)

        added = team_socket.events("team:member:added")[0]["data"]
        assert added["teamId"] == str(team.id)
        assert added["member"]["user_id"] == str(new_user)
        assert user_socket.events("team:invited")

    @pytest.mark.asyncio
    async def test_member_cannot_invite(self, service, team, member_id):
        with pytest.raises(AccessDeniedError):
            await service.add_member(team.id, member_id, uuid4())

    @pytest.mark.asyncio
    async def test_duplicate_member_rejected(self, service, team, owner_id, member_id):
        with pytest.raises(DuplicateMemberError):
            await service.add_member(team.id, owner_id, member_id)

    @pytest.mark.asyncio
    async def test_cannot_invite_as_owner(self, service, team, owner_id):
        with pytest.raises(ValidationError):
            await service.add_member(team.id, owner_id, uuid4(), "owner")

    @pytest.mark.asyncio
    async def test_owner_changes_role(self, service, team, owner_id, member_id, listen):
        socket = await listen(member_id)

        member = await service.change_member_role(team.id, owner_id, member_id, "admin")

        assert member.role == "admin"
        assert socket.events("team:roleChanged")[0]["data"] == {
            "teamId": str(team.id),
            "role": "admin",
        }

    @pytest.mark.asyncio
    async def test_admin_removes_member(self, service, team, admin_id, member_id, listen):
        socket = await listen(member_id)

        team = await service.remove_member(team.id, admin_id, member_id)

        assert member_id not in roles(team)
        assert socket.events("team:removed")[0]["data"] == {"teamId": str(team.id)}

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, service, team, owner_id, admin_id):
        with pytest.raises(OwnerRemovalError):
            await service.remove_member(team.id, admin_id, owner_id)

    @pytest.mark.asyncio
    async def test_remove_unknown_member(self, service, team, owner_id):
        with pytest.raises(MemberNotFoundError):
            await service.remove_member(team.id, owner_id, uuid4())

    @pytest.mark.asyncio
    async def test_non_manager_denied_before_target_lookup(
        self, service, team, member_id, outsider_id
    ):
        # Same answer whether or not the target is on the team
        for requester in (member_id, outsider_id):
            with pytest.raises(AccessDeniedError):
                await service.remove_member(team.id, requester, uuid4())
            with pytest.raises(AccessDeniedError):
                await service.remove_member(team.id, requester, member_id)


class TestTransferOwnership:
    """Test ownership transfer end to end"""

    @pytest.mark.asyncio
    async def test_transfer_then_old_owner_is_admin(
        self, service, team, owner_id, admin_id, member_id, listen
    ):
        # Arrange
        team_socket = await listen(uuid4(), team_room(team.id))
        old_owner_socket = await listen(owner_id)
        new_owner_socket = await listen(admin_id)

        # Act
        team = await service.transfer_ownership(team.id, owner_id, admin_id)

        # Assert
        assert roles(team)[admin_id] == "owner"
        assert roles(team)[owner_id] == "admin"
        assert team.owner_id == admin_id
        assert list(roles(team).values()).count("owner") == 1
        assert team_socket.events("team:owner:transferred")[0]["data"] == {
            "teamId": str(team.id),
            "oldOwnerId": str(owner_id),
            "newOwnerId": str(admin_id),
        }
        assert new_owner_socket.events("team:roleChanged")[0]["data"]["role"] == "owner"
        assert old_owner_socket.events("team:roleChanged")[0]["data"]["role"] == "admin"

        # The previous owner has lost owner rights
        with pytest.raises(NotOwnerError):
            await service.transfer_ownership(team.id, owner_id, member_id)

    @pytest.mark.asyncio
    async def test_transfer_to_non_member(self, service, team, owner_id):
        with pytest.raises(TargetNotMemberError):
            await service.transfer_ownership(team.id, owner_id, uuid4())

    @pytest.mark.asyncio
    async def test_no_events_when_transfer_fails(self, service, team, admin_id, member_id, listen):
        socket = await listen(uuid4(), team_room(team.id))

        with pytest.raises(NotOwnerError):
            await service.transfer_ownership(team.id, admin_id, member_id)

        assert socket.events("team:owner:transferred") == []

    @pytest.mark.asyncio
    async def test_user_room_receives_nothing_for_other_teams(self, service, team, outsider_id, listen):
        socket = await listen(outsider_id)

        await service.create_team(uuid4(), "Another Team")

        assert socket.events("team:invited") == []


class TestConcurrentChanges:
    """Test two writers racing on the same team"""

    @pytest.mark.asyncio
    async def test_racing_transfers_leave_one_owner(
        self, service, team, session_factory, publisher, owner_id, admin_id, member_id
    ):
        async with session_factory() as session:
            rival = TeamService(session, publisher)
            # Loaded before the first transfer lands
            await rival.get_team(team.id, owner_id)

            await service.transfer_ownership(team.id, owner_id, admin_id)

            with pytest.raises(ConcurrentModificationError) as exc_info:
                await rival.transfer_ownership(team.id, owner_id, member_id)
            assert exc_info.value.status_code == 409

        async with session_factory() as session:
            reloaded = await TeamService(session, publisher).get_team(team.id, admin_id)

        assert list(roles(reloaded).values()).count("owner") == 1
        assert roles(reloaded)[admin_id] == "owner"
        assert roles(reloaded)[member_id] == "member"
        assert reloaded.owner_id == admin_id

    @pytest.mark.asyncio
    async def test_role_change_racing_transfer_is_rejected(
        self, service, team, session_factory, publisher, owner_id, admin_id, member_id, listen
    ):
        socket = await listen(member_id)

        async with session_factory() as session:
            rival = TeamService(session, publisher)
            await rival.get_team(team.id, owner_id)

            await service.transfer_ownership(team.id, owner_id, admin_id)

            with pytest.raises(ConcurrentModificationError):
                await rival.change_member_role(team.id, owner_id, member_id, "admin")

        async with session_factory() as session:
            reloaded = await TeamService(session, publisher).get_team(team.id, admin_id)

        assert list(roles(reloaded).values()).count("owner") == 1
        assert reloaded.owner_id == admin_id
        assert roles(reloaded)[member_id] == "member"
        assert socket.events("team:roleChanged") == []
