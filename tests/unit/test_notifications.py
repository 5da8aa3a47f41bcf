"""Unit tests for targeted notifications and room publishing"""

import pytest
from uuid import uuid4

from teamchat.realtime import EventPublisher, NotificationDispatcher
from teamchat.realtime.rooms import channel_room, project_room, team_room

pytestmark = pytest.mark.unit


class TestNotificationDispatcher:
    """Test per-user delivery"""

    @pytest.mark.asyncio
    async def test_notify_reaches_every_socket_of_the_user(self, gateway, listen):
        user_id = uuid4()
        phone = await listen(user_id)
        laptop = await listen(user_id)
        someone_else = await listen(uuid4())

        await NotificationDispatcher(gateway).notify_user(user_id, "team:invited", {"teamId": "t1"})

        assert phone.events("team:invited")[0]["data"] == {"teamId": "t1"}
        assert laptop.events("team:invited")[0]["data"] == {"teamId": "t1"}
        assert someone_else.events("team:invited") == []

    @pytest.mark.asyncio
    async def test_notify_users_skips_excluded(self, gateway, listen):
        author, reader = uuid4(), uuid4()
        author_socket = await listen(author)
        reader_socket = await listen(reader)

        await NotificationDispatcher(gateway).notify_users(
            [author, reader], "message:notification", {"channelId": "c1"}, exclude=author
        )

        assert author_socket.events("message:notification") == []
        assert len(reader_socket.events("message:notification")) == 1

    @pytest.mark.asyncio
    async def test_offline_user_is_not_an_error(self, gateway):
        await NotificationDispatcher(gateway).notify_user(uuid4(), "team:removed", {})


class TestEventPublisher:
    """Test room-scoped broadcasts"""

    @pytest.mark.asyncio
    async def test_each_scope_targets_its_room(self, gateway, listen):
        entity_id = uuid4()
        channel_socket = await listen(uuid4(), channel_room(entity_id))
        team_socket = await listen(uuid4(), team_room(entity_id))
        project_socket = await listen(uuid4(), project_room(entity_id))
        publisher = EventPublisher(gateway)

        await publisher.to_channel(entity_id, "message:created", {"n": 1})
        await publisher.to_team(entity_id, "team:updated", {"n": 2})
        await publisher.to_project(entity_id, "channel:message", {"n": 3})

        assert [f["event"] for f in channel_socket.events() if f["event"] != "connected"] == [
            "message:created"
        ]
        assert [f["event"] for f in team_socket.events() if f["event"] != "connected"] == [
            "team:updated"
        ]
        assert [f["event"] for f in project_socket.events() if f["event"] != "connected"] == [
            "channel:message"
        ]
