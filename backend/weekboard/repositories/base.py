from typing import TypeVar, Generic, Type, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from weekboard.models.base import TimestampedModel, utcnow

T = TypeVar('T', bound=TimestampedModel)


class BaseRepository(Generic[T]):
    def __init__(self, model_class: Type[T]):
        self.model_class = model_class

    async def get_by_id(self, db: AsyncSession, id: str) -> Optional[T]:
        """Get record by ID"""
        result = await db.execute(select(self.model_class).where(self.model_class.id == id))
        return result.scalar_one_or_none()

    async def update(self, db: AsyncSession, id: str, **kwargs) -> Optional[T]:
        """Update a record; returns None when no row matched"""
        kwargs['updated_at'] = utcnow()
        result = await db.execute(
            update(self.model_class).where(self.model_class.id == id).values(**kwargs)
        )
        await db.commit()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(db, id)
