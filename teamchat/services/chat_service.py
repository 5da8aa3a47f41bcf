"""
Channel and message lifecycle.

Message state machine: created -> edited* -> deleted (terminal). Only the
author may edit or delete. Deletion keeps the row, its reactions and
attachments, and replaces the content with a fixed placeholder.

Messages inside a channel are ordered by ``(created_at, id)``. A post takes
``created_at`` strictly after the channel's ``last_message_at`` as it was
read and moves ``last_message_at`` forward with a conditional UPDATE, so
posts never contend on the channel's version.
"""

import logging
from datetime import timedelta
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from teamchat import authorization
from teamchat.config.settings import get_settings
from teamchat.errors import (
    AccessDeniedError,
    ChannelNotFoundError,
    DuplicateMemberError,
    DuplicateReactionError,
    MessageNotFoundError,
    TeamNotFoundError,
    ValidationError,
)
from teamchat.models import (
    Attachment,
    Channel,
    ChannelMember,
    ChannelRole,
    ChannelType,
    DeletedBy,
    Message,
    Reaction,
    utc_now,
)
from teamchat.realtime.notifications import EventPublisher
from teamchat.repositories import ChannelRepository, MessageRepository, TeamRepository
from teamchat.schemas import message_document, reaction_document

logger = logging.getLogger(__name__)

CHANNEL_NAME_MIN = 3
CHANNEL_NAME_MAX = 100
EMOJI_MAX_LENGTH = 64


class ChatService:
    """Channel/message operations for one request."""

    def __init__(self, db: AsyncSession, publisher: EventPublisher):
        self.channels = ChannelRepository(db)
        self.messages = MessageRepository(db)
        self.teams = TeamRepository(db)
        self.publisher = publisher
        self.settings = get_settings()

    # --- channels ---------------------------------------------------------

    async def _load_channel(self, channel_id: UUID) -> Channel:
        channel = await self.channels.find_by_id(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        return channel

    async def _readable_channel(self, channel_id: UUID, user_id: UUID) -> Channel:
        channel = await self._load_channel(channel_id)
        if not authorization.can_read_channel(channel, user_id):
            raise AccessDeniedError()
        return channel

    async def create_channel(
        self,
        creator_id: UUID,
        name: str,
        type: str = ChannelType.PUBLIC.value,
        team_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
        description: Optional[str] = None,
    ) -> Channel:
        """
        Create a channel; the creator becomes its first admin.

        Raises:
            ValidationError: Name length outside [3, 100] or unknown type
            TeamNotFoundError: team_id does not resolve
            AccessDeniedError: Creator is not a member of the team
        """
        name = (name or "").strip()
        if not CHANNEL_NAME_MIN <= len(name) <= CHANNEL_NAME_MAX:
            raise ValidationError(
                f"Channel name must be between {CHANNEL_NAME_MIN} and {CHANNEL_NAME_MAX} characters"
            )
        if type not in {t.value for t in ChannelType}:
            raise ValidationError(f"Invalid channel type '{type}'")

        if team_id is not None:
            team = await self.teams.find_by_id(team_id)
            if team is None:
                raise TeamNotFoundError(team_id)
            if not authorization.can_view_team(team, creator_id):
                raise AccessDeniedError("Only team members can create team channels")

        channel = Channel(
            name=name,
            description=description,
            type=type,
            team_id=team_id,
            project_id=project_id,
            created_by=creator_id,
            is_active=True,
            members=[ChannelMember(user_id=creator_id, role=ChannelRole.ADMIN.value)],
        )
        await self.channels.create(channel)
        logger.info(f"Channel {channel.id} ({type}) created by {creator_id}")
        return channel

    async def list_channels(self, user_id: UUID, team_id: Optional[UUID] = None) -> list[Channel]:
        return await self.channels.find_visible_to(user_id, team_id=team_id)

    async def get_channel(self, channel_id: UUID, user_id: UUID) -> Channel:
        return await self._readable_channel(channel_id, user_id)

    async def add_channel_member(
        self,
        channel_id: UUID,
        requester_id: UUID,
        user_id: UUID,
        role: str = ChannelRole.MEMBER.value,
    ) -> ChannelMember:
        channel = await self._load_channel(channel_id)
        if not authorization.can_manage_channel(channel, requester_id):
            raise AccessDeniedError()
        if role not in {r.value for r in ChannelRole}:
            raise ValidationError(f"Invalid role '{role}'")
        if authorization.get_channel_member(channel, user_id) is not None:
            raise DuplicateMemberError(user_id)

        member = ChannelMember(user_id=user_id, role=role)
        channel.members.append(member)
        await self.channels.save(channel)

        await self.publisher.to_user(
            user_id, "channel:invited", {"channelId": str(channel.id), "role": role}
        )
        return member

    async def delete_channel(self, channel_id: UUID, requester_id: UUID) -> Channel:
        channel = await self._load_channel(channel_id)
        if not authorization.can_manage_channel(channel, requester_id):
            raise AccessDeniedError()
        await self.channels.soft_delete(channel)
        logger.info(f"Channel {channel.id} deleted by {requester_id}")
        await self.publisher.to_channel(channel.id, "channel:deleted", {"id": str(channel.id)})
        return channel

    # --- messages ---------------------------------------------------------

    def _validate_content(self, content: Optional[str]) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content is required")
        if len(content) > self.settings.max_message_length:
            raise ValidationError(
                f"Message cannot exceed {self.settings.max_message_length} characters"
            )
        return content

    async def _load_message(self, message_id: UUID) -> Message:
        message = await self.messages.find_by_id(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    async def get_message(self, message_id: UUID, user_id: UUID) -> Message:
        """Resolve a message by id, tombstones included."""
        message = await self._load_message(message_id)
        await self._readable_channel(message.channel_id, user_id)
        return message

    async def post_message(
        self,
        channel_id: UUID,
        author_id: UUID,
        content: str,
        parent_id: Optional[UUID] = None,
        attachments: Optional[Iterable[dict[str, Any]]] = None,
    ) -> Message:
        """
        Post a message (or a thread reply) to a channel.

        Raises:
            ChannelNotFoundError: Channel does not resolve
            AccessDeniedError: Author is not a member or creator of a
                non-public channel
            ValidationError: Bad content or an invalid parent
        """
        channel = await self._load_channel(channel_id)
        if not authorization.can_post(channel, author_id):
            logger.warning(f"User {author_id} denied posting to channel {channel_id}")
            raise AccessDeniedError()
        content = self._validate_content(content)

        if parent_id is not None:
            parent = await self.messages.find_by_id(parent_id)
            if parent is None or parent.channel_id != channel.id:
                raise ValidationError("Parent message not found in this channel")
            if parent.parent_id is not None:
                raise ValidationError("Replies cannot be nested")

        now = utc_now()
        if channel.last_message_at is not None and now <= channel.last_message_at:
            now = channel.last_message_at + timedelta(microseconds=1)

        message = Message(
            channel_id=channel.id,
            content=content,
            user_id=author_id,
            parent_id=parent_id,
            is_edited=False,
            is_deleted=False,
            created_at=now,
            updated_at=now,
            reactions=[],
            attachments=[
                Attachment(
                    filename=a["filename"],
                    url=a["url"],
                    mime_type=a.get("mime_type"),
                    size=a.get("size"),
                )
                for a in (attachments or [])
            ],
        )
        await self.channels.advance_last_message_at(channel, now)
        # Commits the insert together with the activity update
        await self.messages.create(message)

        document = message_document(message)
        await self.publisher.to_channel(channel.id, "message:created", document)
        if channel.team_id:
            await self.publisher.to_team(channel.team_id, "channel:message", document)
        if channel.project_id:
            await self.publisher.to_project(channel.project_id, "channel:message", document)
        await self.publisher.notifications.notify_users(
            [m.user_id for m in channel.members],
            "message:notification",
            {"channelId": str(channel.id), "message": document},
            exclude=author_id,
        )
        return message

    async def edit_message(self, message_id: UUID, editor_id: UUID, new_content: str) -> Message:
        message = await self._load_message(message_id)
        if message.user_id != editor_id:
            raise AccessDeniedError("Only the author can edit this message")
        if message.is_deleted:
            raise ValidationError("Deleted messages cannot be edited")

        message.content = self._validate_content(new_content)
        message.is_edited = True
        message.edited_at = utc_now()
        await self.messages.save(message)

        await self.publisher.to_channel(
            message.channel_id, "message:updated", message_document(message)
        )
        return message

    async def delete_message(self, message_id: UUID, editor_id: UUID) -> Message:
        message = await self._load_message(message_id)
        if message.user_id != editor_id:
            raise AccessDeniedError("Only the author can delete this message")
        if message.is_deleted:
            raise ValidationError("Message is already deleted")

        await self.messages.soft_delete(
            message,
            placeholder=self.settings.deleted_message_placeholder,
            deleted_by=DeletedBy.AUTHOR.value,
        )
        logger.info(f"Message {message.id} deleted by its author")
        await self.publisher.to_channel(message.channel_id, "message:deleted", {"id": str(message.id)})
        return message

    # --- reactions --------------------------------------------------------

    @staticmethod
    def _validate_emoji(emoji: Optional[str]) -> str:
        emoji = (emoji or "").strip()
        if not emoji or len(emoji) > EMOJI_MAX_LENGTH:
            raise ValidationError("Invalid emoji")
        return emoji

    async def add_reaction(self, message_id: UUID, user_id: UUID, emoji: str) -> Message:
        emoji = self._validate_emoji(emoji)
        message = await self._load_message(message_id)
        await self._readable_channel(message.channel_id, user_id)
        if message.is_deleted:
            raise ValidationError("Cannot react to a deleted message")
        if message.find_reaction(user_id, emoji) is not None:
            raise DuplicateReactionError(emoji)

        reaction = Reaction(emoji=emoji, user_id=user_id, created_at=utc_now())
        message.reactions.append(reaction)
        await self.messages.save(message)

        await self.publisher.to_channel(
            message.channel_id,
            "reaction:added",
            {"messageId": str(message.id), "reaction": reaction_document(reaction)},
        )
        return message

    async def remove_reaction(self, message_id: UUID, user_id: UUID, emoji: str) -> Message:
        """Remove the user's reaction; removing one that does not exist is a no-op."""
        message = await self._load_message(message_id)
        await self._readable_channel(message.channel_id, user_id)

        reaction = message.find_reaction(user_id, emoji)
        if reaction is not None:
            message.reactions.remove(reaction)
            await self.messages.save(message)

        await self.publisher.to_channel(
            message.channel_id,
            "reaction:removed",
            {"messageId": str(message.id), "emoji": emoji},
        )
        return message

    # --- reads ------------------------------------------------------------

    async def get_thread(
        self, parent_id: UUID, user_id: Optional[UUID] = None, include_deleted: bool = False
    ) -> list[Message]:
        """Replies to a message, oldest first. Soft-deleted replies are skipped."""
        if user_id is not None:
            parent = await self._load_message(parent_id)
            await self._readable_channel(parent.channel_id, user_id)
        return await self.messages.find_replies(parent_id, include_deleted=include_deleted)

    async def list_channel_messages(
        self,
        channel_id: UUID,
        user_id: UUID,
        limit: Optional[int] = None,
        before_id: Optional[UUID] = None,
        include_deleted: bool = False,
    ) -> list[Message]:
        """
        Page backwards through a channel's top-level messages.

        The page is fetched newest first from the ``before_id`` cursor and
        returned oldest first.
        """
        await self._readable_channel(channel_id, user_id)

        if limit is None:
            limit = self.settings.default_page_size
        limit = max(1, min(limit, self.settings.max_page_size))

        before = None
        if before_id is not None:
            cursor = await self.messages.find_by_id(before_id)
            if cursor is None or cursor.channel_id != channel_id:
                raise ValidationError("Invalid pagination cursor")
            before = cursor

        page = await self.messages.find_channel_page(
            channel_id, limit, before=before, include_deleted=include_deleted
        )
        page.reverse()
        return page
