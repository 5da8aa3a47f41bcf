"""Channel persistence."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm.attributes import set_committed_value

from teamchat.models import Channel, ChannelMember, ChannelType
from teamchat.repositories.base import Repository


class ChannelRepository(Repository[Channel]):
    model = Channel

    async def find_visible_to(
        self,
        user_id: UUID,
        team_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
    ) -> list[Channel]:
        """
        Active channels the user can see: member, creator, or public.

        Ordered by most recent activity.
        """
        member_of = select(ChannelMember.channel_id).where(ChannelMember.user_id == user_id)
        criteria = [
            or_(
                Channel.created_by == user_id,
                Channel.id.in_(member_of),
                Channel.type == ChannelType.PUBLIC.value,
            ),
            Channel.is_active.is_(True),
        ]
        if team_id is not None:
            criteria.append(Channel.team_id == team_id)
        if project_id is not None:
            criteria.append(Channel.project_id == project_id)
        return await self.find(*criteria, order_by=[Channel.last_message_at.desc()])

    async def advance_last_message_at(self, channel: Channel, at: datetime) -> None:
        """
        Move ``last_message_at`` forward to ``at`` within the current transaction.

        A plain conditional UPDATE: it never moves the value backwards and
        does not touch the channel's version, so concurrent posters do not
        conflict with each other. The caller commits.
        """
        table = Channel.__table__
        await self.session.execute(
            update(table)
            .where(table.c.id == channel.id, table.c.last_message_at < at)
            .values(last_message_at=at)
        )
        if channel.last_message_at is None or at > channel.last_message_at:
            set_committed_value(channel, "last_message_at", at)
