"""
Realtime gateway.

Authenticates WebSocket connections, tracks which rooms each connection is
in, and fans events out to rooms. The gateway never produces lifecycle
events itself; services publish them through it. It is constructed once at
startup and handed to whoever needs it.

Wire format (both directions): ``{"event": <name>, "data": <payload>}``.

Client events:
- ``joinRoom`` / ``leaveRoom`` with ``{"type": ..., "id": ...}``
- ``join-channel`` / ``leave-channel`` with a bare channel id
- ``typing`` with ``{"channelId": ..., ...}``, relayed as ``user-typing``
  to a channel the socket has joined

Client joins go through an injected access check; refused joins get an
``error`` event and change nothing.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple
from uuid import UUID, uuid4

from fastapi import WebSocket

from teamchat.errors import AuthenticationError
from teamchat.realtime.rooms import (
    JOINABLE_ROOM_TYPES,
    RoomType,
    channel_room,
    room_key,
    user_room,
)
from teamchat.security import authenticate_token

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4401
# Policy violation: the socket could not keep up or its write failed
SLOW_CONSUMER_CLOSE_CODE = 1008


class ConnectionState(Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class Connection:
    """One authenticated socket and the rooms it is in."""

    def __init__(self, websocket: WebSocket, user_id: UUID):
        self.id = uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.rooms: Set[str] = set()
        self.state = ConnectionState.AUTHENTICATED

    def __repr__(self) -> str:
        return f"<Connection(id={self.id}, user_id={self.user_id}, state={self.state.value})>"


def encode_envelope(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


def extract_token(websocket: WebSocket) -> Optional[str]:
    """Bearer token from the ``token`` query parameter or Authorization header."""
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


class RealtimeGateway:
    """Room-keyed fan-out over WebSocket connections."""

    def __init__(self, bridge=None, room_access=None, send_timeout: float = 1.0):
        """
        Args:
            bridge: Optional cross-worker fan-out bridge (see redis_bridge)
            room_access: Async ``(user_id, room_type, entity_id) -> bool`` check
                for client joins (see access). Without one, client joins are
                refused.
            send_timeout: Seconds a single socket write may take before the
                connection is dropped as a slow consumer
        """
        self._rooms: Dict[str, Set[Connection]] = {}
        self._connections: Dict[str, Connection] = {}
        self.bridge = bridge
        self.room_access = room_access
        self.send_timeout = send_timeout

    # --- connection lifecycle ---------------------------------------------

    @staticmethod
    def authenticate(token: Optional[str]) -> UUID:
        """Resolve a handshake token to a user id or raise AuthenticationError"""
        return authenticate_token(token)

    async def connect(self, websocket: WebSocket) -> Optional[Connection]:
        """
        Authenticate and register a socket.

        Sockets without a valid bearer token are closed before they are
        accepted; no anonymous connection is ever registered.

        Returns:
            The connection, or None if authentication failed
        """
        try:
            user_id = self.authenticate(extract_token(websocket))
        except AuthenticationError as e:
            logger.info(f"Rejected socket: {e.message}")
            await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason=e.message)
            return None

        await websocket.accept()
        connection = Connection(websocket, user_id)
        self._connections[connection.id] = connection
        self.join(connection, user_room(user_id))

        logger.info(f"Socket connected: user={user_id} connection={connection.id}")
        await self._safe_send(connection, "connected", {"userId": str(user_id)})
        return connection

    async def disconnect(self, connection: Connection) -> None:
        for room in list(connection.rooms):
            self.leave(connection, room)
        self._connections.pop(connection.id, None)
        connection.state = ConnectionState.DISCONNECTED
        logger.info(f"Socket disconnected: user={connection.user_id} connection={connection.id}")

    async def disconnect_all(self) -> None:
        for connection in list(self._connections.values()):
            try:
                await connection.websocket.close(code=1001)
            except Exception as e:
                logger.debug(f"Error closing socket {connection.id}: {e}")
            await self.disconnect(connection)

    # --- rooms ------------------------------------------------------------

    def join(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)
        if connection.state == ConnectionState.AUTHENTICATED:
            connection.state = ConnectionState.JOINED

    def leave(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        connection.rooms.discard(room)

    async def request_join(self, connection: Connection, room_type: str, entity_id: Any) -> bool:
        """
        Join a room on the client's behalf if the access check allows it.

        A refused join leaves the connection's rooms unchanged and sends it
        an ``error`` event naming the room.
        """
        room = room_key(room_type, entity_id)
        if room in connection.rooms:
            return True

        allowed = False
        if self.room_access is not None:
            try:
                allowed = await self.room_access(connection.user_id, room_type, entity_id)
            except Exception as e:
                logger.error(f"Room access check for {room} failed: {e}")

        if not allowed:
            logger.info(f"Refused join of {room} for user {connection.user_id}")
            await self._safe_send(connection, "error", {"room": room, "message": "Access denied"})
            return False

        self.join(connection, room)
        return True

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # --- inbound client events --------------------------------------------

    async def handle_message(self, connection: Connection, raw: str) -> None:
        """Decode one client frame and dispatch it. Malformed frames are ignored."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-JSON frame from {connection.id}")
            return
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.debug(f"Ignoring malformed frame from {connection.id}")
            return
        await self.handle_event(connection, message["event"], message.get("data"))

    async def handle_event(self, connection: Connection, event: str, data: Any) -> None:
        if event in ("joinRoom", "leaveRoom"):
            target = self._typed_room(data)
            if target is None:
                return
            if event == "joinRoom":
                await self.request_join(connection, *target)
            else:
                self.leave(connection, room_key(*target))
        elif event in ("join-channel", "leave-channel"):
            if not data or isinstance(data, (dict, list)):
                return
            if event == "join-channel":
                await self.request_join(connection, RoomType.CHANNEL.value, data)
            else:
                self.leave(connection, channel_room(data))
        elif event == "typing":
            if not isinstance(data, dict) or not data.get("channelId"):
                return
            room = channel_room(data["channelId"])
            # Only sockets that joined the channel may signal typing in it
            if room not in connection.rooms:
                return
            await self.emit(room, "user-typing", data)
        else:
            logger.debug(f"Unknown client event '{event}' from {connection.id}")

    @staticmethod
    def _typed_room(data: Any) -> Optional[Tuple[str, Any]]:
        if not isinstance(data, dict):
            return None
        room_type, entity_id = data.get("type"), data.get("id")
        if not room_type or not entity_id or room_type not in JOINABLE_ROOM_TYPES:
            return None
        return room_type, entity_id

    # --- outbound fan-out -------------------------------------------------

    async def emit(self, room: str, event: str, data: Any) -> None:
        """
        Send an event to every connection in a room.

        Best effort: an empty room is not an error and a failed send drops
        the dead connection instead of raising.
        """
        await self.deliver_local(room, event, data)
        if self.bridge is not None:
            await self.bridge.publish(room, event, data)

    async def deliver_local(self, room: str, event: str, data: Any) -> int:
        """
        Deliver to connections held by this worker. Returns the number reached.

        Writes to the room's sockets run concurrently and each is bounded by
        ``send_timeout``, so one slow client delays the caller by at most
        that long and never holds up the other recipients.
        """
        connections = list(self._rooms.get(room, ()))
        if not connections:
            logger.debug(f"No listeners in room {room} for {event}")
            return 0

        frame = encode_envelope(event, data)
        results = await asyncio.gather(*(self._write(c, frame) for c in connections))
        for connection, ok in zip(connections, results):
            if not ok:
                await self._drop(connection)
        return sum(results)

    async def _write(self, connection: Connection, frame: str) -> bool:
        try:
            await asyncio.wait_for(connection.websocket.send_text(frame), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Socket {connection.id} too slow; dropping it")
        except Exception as e:
            logger.debug(f"Send to {connection.id} failed: {e}")
        return False

    async def _drop(self, connection: Connection) -> None:
        """Unregister a failed connection and close its socket."""
        await self.disconnect(connection)
        try:
            await asyncio.wait_for(
                connection.websocket.close(code=SLOW_CONSUMER_CLOSE_CODE), self.send_timeout
            )
        except Exception as e:
            logger.debug(f"Error closing socket {connection.id}: {e}")

    async def _safe_send(self, connection: Connection, event: str, data: Any) -> None:
        if not await self._write(connection, encode_envelope(event, data)):
            await self._drop(connection)
