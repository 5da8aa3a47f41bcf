"""Message persistence: channel feed pages and thread replies."""

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, or_

from teamchat.models import Message
from teamchat.models.base import utc_now
from teamchat.repositories.base import Repository


class MessageRepository(Repository[Message]):
    model = Message

    async def find_channel_page(
        self,
        channel_id: UUID,
        limit: int,
        before: Optional[Message] = None,
        include_deleted: bool = False,
    ) -> list[Message]:
        """
        One page of top-level messages, newest first.

        Feed order is ``(created_at, id)``; ``id`` only breaks ties between
        messages accepted in the same instant.

        Args:
            channel_id: Channel to read
            limit: Page size
            before: Cursor message; only messages ordered before it are returned
            include_deleted: Keep soft-deleted messages in the page
        """
        criteria = [Message.channel_id == channel_id, Message.parent_id.is_(None)]
        if not include_deleted:
            criteria.append(Message.is_deleted.is_(False))
        if before is not None:
            criteria.append(
                or_(
                    Message.created_at < before.created_at,
                    and_(Message.created_at == before.created_at, Message.id < before.id),
                )
            )
        return await self.find(
            *criteria, order_by=[Message.created_at.desc(), Message.id.desc()], limit=limit
        )

    async def find_replies(self, parent_id: UUID, include_deleted: bool = False) -> list[Message]:
        """Replies to a message, oldest first."""
        criteria = [Message.parent_id == parent_id]
        if not include_deleted:
            criteria.append(Message.is_deleted.is_(False))
        return await self.find(*criteria, order_by=[Message.created_at.asc(), Message.id.asc()])

    async def soft_delete(
        self, entity: Message, placeholder: str = "", deleted_by: str = "author"
    ) -> Message:
        """Tombstone a message: keep the row, replace its content."""
        entity.is_deleted = True
        entity.content = placeholder
        entity.deleted_at = utc_now()
        entity.deleted_by = deleted_by
        return await self.save(entity)
