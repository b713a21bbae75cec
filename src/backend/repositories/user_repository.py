"""Repository for User database operations."""

from typing import List, Optional

from sqlalchemy import case, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.enums import Role
from db.models import User
from repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    model = User

    @classmethod
    async def find_by_name(cls, db: AsyncSession, name: str) -> Optional[User]:
        """Find the first user (lowest id) with exactly this name."""
        return await cls.find_one(db, filters={"name": name})

    @classmethod
    async def find_assignable(cls, db: AsyncSession, unit_id: int) -> List[User]:
        """
        Users a ticket of `unit_id` may be assigned to.

        Returns all admins plus every user of the unit, admins first, then
        managers, then employees, each group by name.
        """
        role_order = case(
            (User.role == Role.ADMIN, 0),
            (User.role == Role.MANAGER, 1),
            else_=2,
        )
        stmt = (
            select(User)
            .where(or_(User.role == Role.ADMIN, User.unit_id == unit_id))
            .order_by(role_order, User.name, User.id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
