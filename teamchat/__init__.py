"""
Team Chat Service

Real-time messaging and team authorization backend:
- Teams with an owner/admin/member role hierarchy
- Channels and threaded messages with reactions and attachments
- WebSocket gateway with room-based fan-out
- Targeted per-user notifications
"""

__version__ = "1.0.0"

from teamchat.config import TeamChatConfig

__all__ = ["TeamChatConfig"]
