"""
Base Repository for the Studio Membership backend

Generic async repository implementing the shared read operations.
Follows SOLID principles:
- Single Responsibility: Only handles data access logic
- Open/Closed: Extensible via inheritance
- Interface Segregation: Read interface kept separate
- Dependency Inversion: Depends on SQLModel abstractions
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from app.infrastructure.exceptions import DatabaseError


# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=SQLModel)


class IReadRepository(ABC, Generic[ModelType]):
    """
    Interface for read operations (Interface Segregation Principle).
    """

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get a single record by ID."""
        pass

    @abstractmethod
    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100
    ) -> List[ModelType]:
        """Get all records with pagination."""
        pass


class BaseRepository(IReadRepository[ModelType], Generic[ModelType]):
    """
    Generic async repository.

    Args:
        model: The SQLModel table class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    @property
    def table_name(self) -> str:
        return self._model.__tablename__

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Get a single record by its primary key.

        Args:
            id: Integer primary key

        Returns:
            Model instance or None if not found
        """
        try:
            return await self._session.get(self._model, id)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load {self.table_name} row {id}",
                operation="get",
                table=self.table_name,
                original_error=e,
            ) from e

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100
    ) -> List[ModelType]:
        """
        Get all records ordered by id, with pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum records to return
        """
        stmt = (
            select(self._model)
            .order_by(self._model.id)
            .offset(skip)
            .limit(limit)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to list {self.table_name}",
                operation="list",
                table=self.table_name,
                original_error=e,
            ) from e
        return list(result.scalars().all())

