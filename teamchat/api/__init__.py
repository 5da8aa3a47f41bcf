"""
Team chat API routes.

Provides REST API endpoints for:
- Team management and membership
- Channels, messages, reactions and threads
- The realtime WebSocket endpoint
"""

from teamchat.api.channels import router as channels_router
from teamchat.api.teams import router as teams_router
from teamchat.api.websocket import router as websocket_router

__all__ = [
    "teams_router",
    "channels_router",
    "websocket_router",
]
