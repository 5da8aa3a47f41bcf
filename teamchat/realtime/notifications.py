"""
Event publishing and targeted notifications.

EventPublisher is what services use to announce lifecycle events to rooms.
NotificationDispatcher sends per-user notifications ("you were invited",
"your role changed") to each user's private room, whether or not that user
has any channel or team room joined.
"""

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from teamchat.realtime.gateway import RealtimeGateway
from teamchat.realtime.rooms import channel_room, project_room, team_room, user_room

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Per-user notifications delivered through the user rooms."""

    def __init__(self, gateway: RealtimeGateway):
        self.gateway = gateway

    async def notify_user(self, user_id: UUID, event: str, data: Any) -> None:
        await self.gateway.emit(user_room(user_id), event, data)

    async def notify_users(
        self,
        user_ids: Iterable[UUID],
        event: str,
        data: Any,
        exclude: Optional[UUID] = None,
    ) -> None:
        for user_id in user_ids:
            if user_id == exclude:
                continue
            await self.notify_user(user_id, event, data)


class EventPublisher:
    """Room-scoped broadcasts for lifecycle events."""

    def __init__(self, gateway: RealtimeGateway, notifications: Optional[NotificationDispatcher] = None):
        self.gateway = gateway
        self.notifications = notifications or NotificationDispatcher(gateway)

    async def to_channel(self, channel_id: UUID, event: str, data: Any) -> None:
        await self.gateway.emit(channel_room(channel_id), event, data)

    async def to_team(self, team_id: UUID, event: str, data: Any) -> None:
        await self.gateway.emit(team_room(team_id), event, data)

    async def to_project(self, project_id: UUID, event: str, data: Any) -> None:
        await self.gateway.emit(project_room(project_id), event, data)

    async def to_user(self, user_id: UUID, event: str, data: Any) -> None:
        await self.notifications.notify_user(user_id, event, data)
