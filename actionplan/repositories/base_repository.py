from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from actionplan.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Lookup and insert for one model.

    Repositories never commit: the unit of work belongs to whoever opened
    the session, so several repository calls can share one transaction.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError:
            self.logger.error(f"Error loading {self.model.__name__} {id}", exc_info=True)
            raise

    async def create(self, **kwargs) -> ModelType:
        """Add a new row to the session and flush it so defaults and ids are populated."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        try:
            await self.session.flush()
        except SQLAlchemyError:
            self.logger.error(f"Error creating {self.model.__name__}", exc_info=True)
            raise
        return instance
