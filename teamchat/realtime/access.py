"""
Room access for client-initiated joins.

A socket may only subscribe to rooms whose events it could also read over
HTTP: a channel room needs channel read access, a team room needs team
membership, and a project room needs read access to at least one of the
project's channels. User rooms are never joinable; they are assigned on
authentication.
"""

import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teamchat import authorization
from teamchat.realtime.rooms import RoomType
from teamchat.repositories import ChannelRepository, TeamRepository

logger = logging.getLogger(__name__)

# (user_id, room_type, entity_id) -> allowed
RoomAccess = Callable[[UUID, str, Any], Awaitable[bool]]


class RoomAccessPolicy:
    """Checks room joins against the database, one short session per check."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def __call__(self, user_id: UUID, room_type: str, entity_id: Any) -> bool:
        try:
            entity_id = UUID(str(entity_id))
        except ValueError:
            return False

        async with self.session_factory() as session:
            if room_type == RoomType.CHANNEL.value:
                channel = await ChannelRepository(session).find_by_id(entity_id)
                return channel is not None and authorization.can_read_channel(channel, user_id)

            if room_type == RoomType.TEAM.value:
                team = await TeamRepository(session).find_by_id(entity_id)
                return team is not None and authorization.can_view_team(team, user_id)

            if room_type == RoomType.PROJECT.value:
                channels = await ChannelRepository(session).find_visible_to(
                    user_id, project_id=entity_id
                )
                return bool(channels)

        logger.debug(f"No access rule for room type '{room_type}'")
        return False
