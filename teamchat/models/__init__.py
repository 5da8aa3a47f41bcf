"""
Database models for the team chat service.

- Teams with an embedded member/role table
- Channels with channel-level membership
- Messages with reactions and attachments
"""

from teamchat.models.base import Base, utc_now
from teamchat.models.channel import Channel, ChannelMember, ChannelRole, ChannelType
from teamchat.models.message import Attachment, DeletedBy, Message, Reaction
from teamchat.models.team import Team, TeamMember, TeamRole

__all__ = [
    "Base",
    "utc_now",
    "Team",
    "TeamMember",
    "TeamRole",
    "Channel",
    "ChannelMember",
    "ChannelRole",
    "ChannelType",
    "Message",
    "Reaction",
    "Attachment",
    "DeletedBy",
]
