"""
WebSocket endpoint for realtime events.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Realtime socket.

    Authenticate with ``?token=<jwt>`` or an ``Authorization: Bearer``
    header. Unauthenticated sockets are closed with code 4401.
    """
    gateway = websocket.app.state.gateway
    connection = await gateway.connect(websocket)
    if connection is None:
        return

    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.handle_message(connection, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error for {connection.id}: {e}", exc_info=True)
    finally:
        await gateway.disconnect(connection)
