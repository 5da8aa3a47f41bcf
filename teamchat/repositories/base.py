"""
Persistence gateway.

A small document-store style contract over an AsyncSession:
find_by_id, find, create, save (whole-aggregate update) and soft_delete.

Aggregates (a team with its members, a message with its reactions) are
loaded and written as a unit. ``save`` bumps the aggregate's ``version`` and
the UPDATE only matches the version that was read, so two concurrent
read-modify-write sequences on the same aggregate cannot silently lose an
update: the second one fails with ConcurrentModificationError.
"""

import logging
from typing import Any, Generic, Optional, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from teamchat.errors import ConcurrentModificationError
from teamchat.models.base import Base, utc_now

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """Generic repository for a versioned aggregate root."""

    model: Type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    def _active_criteria(self) -> list:
        """Criteria that hide soft-deleted rows from default lookups."""
        if hasattr(self.model, "is_active"):
            return [self.model.is_active.is_(True)]
        return []

    async def find_by_id(self, entity_id: UUID, include_inactive: bool = False) -> Optional[ModelT]:
        """
        Get an entity by id.

        Args:
            entity_id: Primary key
            include_inactive: Also return soft-deleted rows

        Returns:
            The entity, or None if it does not resolve
        """
        criteria = [self.model.id == entity_id]
        if not include_inactive:
            criteria.extend(self._active_criteria())
        result = await self.session.execute(select(self.model).where(*criteria))
        return result.scalar_one_or_none()

    async def find(
        self,
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list[ModelT]:
        """Run an indexed query and return the matching entities."""
        stmt = select(self.model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    def add(self, entity: ModelT) -> ModelT:
        """Stage a new entity; it is written by the next create or save."""
        self.session.add(entity)
        return entity

    async def create(self, entity: ModelT) -> ModelT:
        """Insert a new aggregate."""
        self.session.add(entity)
        await self._commit()
        logger.debug(f"Created {self.entity_name} {entity.id}")
        return entity

    async def save(self, entity: ModelT) -> ModelT:
        """
        Write the whole aggregate back in one transaction.

        Raises:
            ConcurrentModificationError: If another writer saved the aggregate
                after it was loaded
        """
        entity.version = entity.version + 1
        entity.updated_at = utc_now()
        await self._commit()
        return entity

    async def soft_delete(self, entity: ModelT) -> ModelT:
        """Flip the entity's active flag and save it."""
        entity.soft_delete()
        return await self.save(entity)

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except (StaleDataError, IntegrityError) as e:
            await self.session.rollback()
            logger.warning(f"Concurrent modification of {self.entity_name}: {e}")
            raise ConcurrentModificationError(self.entity_name) from e
