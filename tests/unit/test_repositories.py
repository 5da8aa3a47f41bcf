"""Unit tests for the persistence gateway

Version-guarded saves and the default soft-delete filters.
"""

import pytest
from uuid import uuid4

from teamchat.database import async_database_url
from teamchat.errors import ConcurrentModificationError
from teamchat.models import Channel, ChannelMember, Team, TeamMember
from teamchat.repositories import ChannelRepository, TeamRepository

pytestmark = pytest.mark.unit


async def seed_team(session_factory, owner_id):
    async with session_factory() as session:
        team = Team(
            name="Platform Team",
            created_by=owner_id,
            owner_id=owner_id,
            is_active=True,
            members=[TeamMember(user_id=owner_id, role="owner")],
        )
        await TeamRepository(session).create(team)
        return team.id


class TestVersionGuard:
    """Test optimistic concurrency on aggregate saves"""

    @pytest.mark.asyncio
    async def test_save_bumps_version(self, session_factory, owner_id):
        team_id = await seed_team(session_factory, owner_id)

        async with session_factory() as session:
            repo = TeamRepository(session)
            team = await repo.find_by_id(team_id)
            assert team.version == 1

            team.name = "Platform Guild"
            await repo.save(team)

        async with session_factory() as session:
            team = await TeamRepository(session).find_by_id(team_id)
            assert team.version == 2
            assert team.name == "Platform Guild"

    @pytest.mark.asyncio
    async def test_lost_update_is_detected(self, session_factory, owner_id):
        """Two writers load the same version; the second save fails"""
        # Arrange
        team_id = await seed_team(session_factory, owner_id)
        first_user, second_user = uuid4(), uuid4()

        async with session_factory() as first, session_factory() as second:
            first_repo, second_repo = TeamRepository(first), TeamRepository(second)
            first_copy = await first_repo.find_by_id(team_id)
            second_copy = await second_repo.find_by_id(team_id)

            # Act
            first_copy.members.append(TeamMember(user_id=first_user, role="member"))
            await first_repo.save(first_copy)

            second_copy.members.append(TeamMember(user_id=second_user, role="member"))

            # Assert
            with pytest.raises(ConcurrentModificationError):
                await second_repo.save(second_copy)

        async with session_factory() as session:
            team = await TeamRepository(session).find_by_id(team_id)
            assert {m.user_id for m in team.members} == {owner_id, first_user}
            assert team.version == 2

    @pytest.mark.asyncio
    async def test_stale_channel_activity_is_rejected(self, session_factory, owner_id):
        async with session_factory() as session:
            channel = Channel(
                name="general",
                type="public",
                created_by=owner_id,
                is_active=True,
                members=[ChannelMember(user_id=owner_id, role="admin")],
            )
            await ChannelRepository(session).create(channel)
            channel_id = channel.id

        async with session_factory() as first, session_factory() as second:
            first_copy = await ChannelRepository(first).find_by_id(channel_id)
            second_copy = await ChannelRepository(second).find_by_id(channel_id)

            first_copy.description = "first"
            await ChannelRepository(first).save(first_copy)

            second_copy.description = "second"
            with pytest.raises(ConcurrentModificationError):
                await ChannelRepository(second).save(second_copy)


class TestSoftDelete:
    """Test soft-deleted rows are hidden from default lookups"""

    @pytest.mark.asyncio
    async def test_soft_deleted_team_hidden(self, session_factory, owner_id):
        team_id = await seed_team(session_factory, owner_id)

        async with session_factory() as session:
            repo = TeamRepository(session)
            await repo.soft_delete(await repo.find_by_id(team_id))

        async with session_factory() as session:
            repo = TeamRepository(session)
            assert await repo.find_by_id(team_id) is None
            assert (await repo.find_by_id(team_id, include_inactive=True)).is_active is False
            assert await repo.find_for_user(owner_id) == []


class TestDatabaseUrl:
    """Test driver selection for configured database URLs"""

    def test_postgres_url_uses_asyncpg(self):
        assert (
            async_database_url("postgresql://chat:secret@db:5432/teamchat")
            == "postgresql+asyncpg://chat:secret@db:5432/teamchat"
        )

    def test_explicit_driver_is_kept(self):
        assert async_database_url("sqlite+aiosqlite:///./chat.db") == "sqlite+aiosqlite:///./chat.db"
        assert (
            async_database_url("postgresql+asyncpg://db/teamchat") == "postgresql+asyncpg://db/teamchat"
        )
