"""
Response schemas shared by the REST routes and the realtime payloads.

A message pushed over a socket is the same document a REST client gets back.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class TeamMemberResponse(BaseModel):
    id: UUID
    user_id: UUID
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class TeamResponse(BaseModel):
    """Schema for team response."""

    id: UUID
    name: str
    description: Optional[str]
    avatar: Optional[str]
    members: List[TeamMemberResponse]
    created_by: UUID
    owner_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ChannelMemberResponse(BaseModel):
    user_id: UUID
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class ChannelResponse(BaseModel):
    """Schema for channel response."""

    id: UUID
    name: str
    description: Optional[str]
    type: str
    team_id: Optional[UUID]
    project_id: Optional[UUID]
    members: List[ChannelMemberResponse]
    created_by: UUID
    last_message_at: datetime
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ReactionResponse(BaseModel):
    id: UUID
    emoji: str
    user_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    filename: str
    url: str
    mime_type: Optional[str] = None
    size: Optional[int] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    """Schema for message response (the full message document)."""

    id: UUID
    channel_id: UUID
    content: str
    user_id: UUID
    parent_id: Optional[UUID]
    reactions: List[ReactionResponse]
    attachments: List[AttachmentResponse]
    is_edited: bool
    edited_at: Optional[datetime]
    is_deleted: bool
    deleted_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def message_document(message) -> dict:
    """JSON-ready message document for socket payloads."""
    return MessageResponse.model_validate(message).model_dump(mode="json")


def team_document(team) -> dict:
    return TeamResponse.model_validate(team).model_dump(mode="json")


def team_member_document(member) -> dict:
    return TeamMemberResponse.model_validate(member).model_dump(mode="json")


def reaction_document(reaction) -> dict:
    return ReactionResponse.model_validate(reaction).model_dump(mode="json")
