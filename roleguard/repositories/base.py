"""
Generic async repository shared by the role, principal and audit repositories.

Repositories only flush. The service that opened the unit of work decides
when to commit or roll back.
"""
from typing import Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roleguard.models.base import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Primary-key access for a single mapped model.

    Subclasses add the model-specific queries.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """
        Load a row by primary key.

        Args:
            id: Row UUID

        Returns:
            The instance, or None when no row has that id
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        result = await self.session.execute(
            select(self.model).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def create(self, **values) -> ModelType:
        """Insert a row and reload it so server defaults are populated."""
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: UUID, **values) -> Optional[ModelType]:
        """
        Apply column values to a row with a single UPDATE.

        Returns:
            The refreshed instance, or None when no row has that id
        """
        await self.session.execute(
            update(self.model)
            .where(self.model.id == id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        instance = await self.get_by_id(id)
        if instance is None:
            return None
        await self.session.refresh(instance)
        return instance

    async def delete(self, id: UUID) -> bool:
        """Delete a row by id; False when nothing matched."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def exists(self, id: UUID) -> bool:
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == id).limit(1)
        )
        return result.first() is not None
