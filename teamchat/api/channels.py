"""
Channel, message, reaction and thread API routes.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from teamchat.api.deps import get_chat_service
from teamchat.errors import MessageNotFoundError
from teamchat.middleware.auth import get_current_user_id
from teamchat.models import ChannelRole, ChannelType, Message
from teamchat.schemas import ChannelMemberResponse, ChannelResponse, MessageResponse
from teamchat.services import ChatService

router = APIRouter(prefix="/api/v1/channels", tags=["channels"])


# Pydantic schemas
class ChannelCreate(BaseModel):
    """Schema for creating a channel."""

    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None
    type: ChannelType = ChannelType.PUBLIC
    team_id: Optional[UUID] = None
    project_id: Optional[UUID] = None


class ChannelMemberAdd(BaseModel):
    user_id: UUID
    role: ChannelRole = ChannelRole.MEMBER


class AttachmentCreate(BaseModel):
    """Metadata of an already uploaded file."""

    filename: str = Field(..., max_length=255)
    url: str = Field(..., max_length=2048)
    mime_type: Optional[str] = Field(None, max_length=100)
    size: Optional[int] = Field(None, ge=0)


class MessageCreate(BaseModel):
    """Schema for posting a message or a thread reply."""

    content: str = Field(..., min_length=1)
    parent_id: Optional[UUID] = None
    attachments: List[AttachmentCreate] = []


class MessageUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class ReactionCreate(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=64)


async def _message_in_channel(
    service: ChatService, channel_id: UUID, message_id: UUID, user_id: UUID
) -> Message:
    message = await service.get_message(message_id, user_id)
    if message.channel_id != channel_id:
        raise MessageNotFoundError(message_id)
    return message


@router.get("", response_model=List[ChannelResponse])
async def list_channels(
    team_id: Optional[UUID] = Query(None),
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """List active channels visible to the current user, most recently active first."""
    return await service.list_channels(current_user_id, team_id=team_id)


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(
    channel: ChannelCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Create a channel.

    Args:
        channel: Channel data
        current_user_id: Authenticated user, recorded as creator and admin
        service: Chat service

    Returns:
        Created channel

    Raises:
        TeamNotFoundError: If team_id does not resolve
        AccessDeniedError: If the caller is not a member of the team
    """
    return await service.create_channel(
        current_user_id,
        channel.name,
        type=channel.type.value,
        team_id=channel.team_id,
        project_id=channel.project_id,
        description=channel.description,
    )


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel(
    channel_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    return await service.get_channel(channel_id, current_user_id)


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_channel(
    channel_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Soft delete a channel. Requires the creator or a channel admin."""
    await service.delete_channel(channel_id, current_user_id)


@router.post(
    "/{channel_id}/members",
    response_model=ChannelMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_channel_member(
    channel_id: UUID,
    body: ChannelMemberAdd,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    return await service.add_channel_member(
        channel_id, current_user_id, body.user_id, role=body.role.value
    )


@router.get("/{channel_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    channel_id: UUID,
    limit: int = Query(50, ge=1),
    before: Optional[UUID] = Query(None),
    include_deleted: bool = Query(False),
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Page through a channel's top-level messages.

    Returns up to ``limit`` messages older than ``before``, oldest first.
    """
    return await service.list_channel_messages(
        channel_id,
        current_user_id,
        limit=limit,
        before_id=before,
        include_deleted=include_deleted,
    )


@router.post(
    "/{channel_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    channel_id: UUID,
    body: MessageCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Post a message to a channel. Set parent_id to reply in a thread."""
    return await service.post_message(
        channel_id,
        current_user_id,
        body.content,
        parent_id=body.parent_id,
        attachments=[a.model_dump() for a in body.attachments],
    )


@router.get("/{channel_id}/messages/{message_id}", response_model=MessageResponse)
async def get_message(
    channel_id: UUID,
    message_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Get a single message. Deleted messages are returned as tombstones."""
    return await _message_in_channel(service, channel_id, message_id, current_user_id)


@router.put("/{channel_id}/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    channel_id: UUID,
    message_id: UUID,
    body: MessageUpdate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Edit a message. Only the author can edit."""
    await _message_in_channel(service, channel_id, message_id, current_user_id)
    return await service.edit_message(message_id, current_user_id, body.content)


@router.delete("/{channel_id}/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    channel_id: UUID,
    message_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Soft delete a message. Only the author can delete."""
    await _message_in_channel(service, channel_id, message_id, current_user_id)
    return await service.delete_message(message_id, current_user_id)


@router.post("/{channel_id}/messages/{message_id}/reactions", response_model=MessageResponse)
async def add_reaction(
    channel_id: UUID,
    message_id: UUID,
    body: ReactionCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    await _message_in_channel(service, channel_id, message_id, current_user_id)
    return await service.add_reaction(message_id, current_user_id, body.emoji)


@router.delete(
    "/{channel_id}/messages/{message_id}/reactions/{emoji}",
    response_model=MessageResponse,
)
async def remove_reaction(
    channel_id: UUID,
    message_id: UUID,
    emoji: str,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    await _message_in_channel(service, channel_id, message_id, current_user_id)
    return await service.remove_reaction(message_id, current_user_id, emoji)


@router.get("/{channel_id}/messages/{message_id}/thread", response_model=List[MessageResponse])
async def get_thread(
    channel_id: UUID,
    message_id: UUID,
    include_deleted: bool = Query(False),
    current_user_id: UUID = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """List replies to a message, oldest first."""
    await _message_in_channel(service, channel_id, message_id, current_user_id)
    return await service.get_thread(message_id, include_deleted=include_deleted)
