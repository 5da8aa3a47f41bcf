"""Lifecycle services for teams, channels and messages."""

from teamchat.services.chat_service import ChatService
from teamchat.services.team_service import TeamService

__all__ = ["ChatService", "TeamService"]
