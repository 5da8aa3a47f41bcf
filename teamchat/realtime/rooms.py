"""Room naming for socket fan-out."""

from enum import Enum
from typing import Any


class RoomType(str, Enum):
    USER = "user"
    CHANNEL = "channel"
    TEAM = "team"
    PROJECT = "project"


# Rooms a client may join on its own; user rooms are assigned on auth only
JOINABLE_ROOM_TYPES = {RoomType.CHANNEL.value, RoomType.TEAM.value, RoomType.PROJECT.value}


def room_key(room_type: str, entity_id: Any) -> str:
    """
    Canonical room name, e.g. ``channel_<id>``.

    Both the legacy ``join-channel`` event and ``joinRoom`` resolve here.
    """
    if isinstance(room_type, RoomType):
        room_type = room_type.value
    return f"{room_type}_{entity_id}"


def user_room(user_id: Any) -> str:
    return room_key(RoomType.USER, user_id)


def channel_room(channel_id: Any) -> str:
    return room_key(RoomType.CHANNEL, channel_id)


def team_room(team_id: Any) -> str:
    return room_key(RoomType.TEAM, team_id)


def project_room(project_id: Any) -> str:
    return room_key(RoomType.PROJECT, project_id)
