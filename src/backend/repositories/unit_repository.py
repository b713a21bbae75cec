"""Repository for Unit database operations."""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Unit
from repositories.base_repository import BaseRepository


class UnitRepository(BaseRepository[Unit]):
    """Repository for organizational units."""

    model = Unit

    @classmethod
    async def list_units(cls, db: AsyncSession) -> List[Unit]:
        return await cls.find_all(db, order_by=[Unit.name, Unit.id])
