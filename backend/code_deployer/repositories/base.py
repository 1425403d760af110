"""
Base repository class with common CRUD operations.

Provides a foundation for domain-specific repositories with:
- Type-safe generic operations
- Consistent error handling (SQLAlchemy errors surface as PersistenceError)
"""
from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from code_deployer.core.exceptions import PersistenceError

T = TypeVar("T", bound=DeclarativeBase)


class BaseRepository(Generic[T]):
    """
    Generic base repository for CRUD operations.

    Subclass this and set the `model` class attribute to your SQLAlchemy model.
    Override methods as needed for domain-specific behavior.
    """

    model: Type[T]

    def __init__(self, db: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy async session
        """
        self.db = db

    async def _commit(self, operation: str) -> None:
        """
        Commit the session, converting driver errors into PersistenceError.

        The session is rolled back on failure so it stays usable for a
        follow-up write (e.g. the failure transition).
        """
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(operation, str(e)) from e

    async def get_by_id(self, id: UUID) -> Optional[T]:
        """
        Get a single record by ID.

        Args:
            id: Record UUID

        Returns:
            Record if found, None otherwise
        """
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, entity: T) -> T:
        """
        Create a new record.

        Args:
            entity: Entity to create

        Returns:
            Created entity with ID populated

        Raises:
            PersistenceError: If the insert fails
        """
        self.db.add(entity)
        await self._commit(f"create {self.model.__tablename__}")
        await self.db.refresh(entity)
        return entity
