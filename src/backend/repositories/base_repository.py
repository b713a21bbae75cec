"""
Base repository with generic CRUD operations.

Provides reusable database operations inherited by the entity repositories.
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common CRUD operations.

    Usage:
        class UnitRepository(BaseRepository[Unit]):
            model = Unit
    """

    model: Type[ModelType] = None

    @classmethod
    async def find_by_id(cls, db: AsyncSession, id_value: Any) -> Optional[ModelType]:
        """
        Find a single record by ID.

        Returns:
            Model instance or None if not found
        """
        result = await db.execute(select(cls.model).where(cls.model.id == id_value))
        return result.scalar_one_or_none()

    @classmethod
    async def find_one(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[ModelType]:
        """
        Find the first record matching filters (lowest id first).

        Args:
            db: Database session
            filters: Dictionary of field:value filters
        """
        stmt = select(cls.model)

        if filters:
            for field, value in filters.items():
                stmt = stmt.where(getattr(cls.model, field) == value)

        result = await db.execute(stmt.order_by(cls.model.id).limit(1))
        return result.scalars().first()

    @classmethod
    async def find_all(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Any] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> List[ModelType]:
        """
        Find all records matching filters.

        Args:
            db: Database session
            filters: Dictionary of field:value filters (None values are skipped)
            order_by: Column or list of columns to order by
            limit: Maximum number of records
            offset: Number of records to skip
        """
        stmt = select(cls.model)

        if filters:
            for field, value in filters.items():
                if value is not None:
                    stmt = stmt.where(getattr(cls.model, field) == value)

        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                stmt = stmt.order_by(*order_by)
            else:
                stmt = stmt.order_by(order_by)

        if offset:
            stmt = stmt.offset(offset)

        if limit:
            stmt = stmt.limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def create(
        cls,
        db: AsyncSession,
        *,
        obj_in: Dict[str, Any],
        commit: bool = True
    ) -> ModelType:
        """
        Create a new record.

        Args:
            db: Database session
            obj_in: Dictionary of field values
            commit: Commit immediately; otherwise only flush so the id is assigned

        Returns:
            Created model instance
        """
        db_obj = cls.model(**obj_in)
        db.add(db_obj)

        if commit:
            await db.commit()
        else:
            await db.flush()
        await db.refresh(db_obj)

        return db_obj
