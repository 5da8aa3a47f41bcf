"""
Persistence gateway for teams, channels and messages.
"""

from teamchat.repositories.base import Repository
from teamchat.repositories.channel import ChannelRepository
from teamchat.repositories.message import MessageRepository
from teamchat.repositories.team import TeamRepository

__all__ = [
    "Repository",
    "TeamRepository",
    "ChannelRepository",
    "MessageRepository",
]
