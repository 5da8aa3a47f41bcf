"""
Realtime layer: socket gateway, room naming and event publishing.
"""

from teamchat.realtime.gateway import Connection, ConnectionState, RealtimeGateway
from teamchat.realtime.notifications import EventPublisher, NotificationDispatcher
from teamchat.realtime.rooms import RoomType, room_key

__all__ = [
    "RealtimeGateway",
    "Connection",
    "ConnectionState",
    "EventPublisher",
    "NotificationDispatcher",
    "RoomType",
    "room_key",
]
