from typing import Any, Dict, Generic, Optional, Type, TypeVar

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.core.exceptions import DatabaseError
from sinhala_scribe.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """
    Base class for CRUD operations with uniform error handling
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize with model class

        Args:
            model: SQLAlchemy model class
        """
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Get a record by ID

        Args:
            db: Database session
            id: Record ID

        Returns:
            Model instance if found, None otherwise
        """
        try:
            result = await db.execute(select(self.model).filter(self.model.id == id))
            return result.scalars().first()
        except Exception as e:
            logger.error(f"Error retrieving {self.model.__name__} with ID {id}: {e}")
            raise DatabaseError(f"Error retrieving {self.model.__name__}")

    async def create(self, db: AsyncSession, *, obj_in: Dict[str, Any]) -> ModelType:
        """
        Create a new record (flushed, not committed)

        Args:
            db: Database session
            obj_in: Model fields

        Returns:
            Created model instance
        """
        try:
            db_obj = self.model(**obj_in)
            db.add(db_obj)
            await db.flush()
            await db.refresh(db_obj)
            return db_obj
        except Exception as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            await db.rollback()
            raise DatabaseError(f"Error creating {self.model.__name__}")

    async def remove_by_condition(self, db: AsyncSession, *, condition) -> int:
        """
        Remove records by condition

        Returns:
            Number of records deleted
        """
        try:
            result = await db.execute(delete(self.model).where(condition))
            await db.flush()
            return result.rowcount
        except Exception as e:
            logger.error(f"Error removing {self.model.__name__} by condition: {e}")
            await db.rollback()
            raise DatabaseError(f"Error removing {self.model.__name__} records")
