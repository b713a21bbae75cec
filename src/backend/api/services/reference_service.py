"""
Reference data used when raising and routing tickets.
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.decorators import database_query
from core.exceptions import ValidationError
from db.models import Unit, User
from repositories import UnitRepository, UserRepository

logger = logging.getLogger(__name__)


class ReferenceService:
    """Units and assignable users."""

    @staticmethod
    @database_query("list_units")
    async def list_units(db: AsyncSession) -> List[Unit]:
        return await UnitRepository.list_units(db)

    @staticmethod
    @database_query("list_assignable_users")
    async def list_assignable_users(db: AsyncSession, unit_id: Optional[int]) -> List[User]:
        """
        Users a ticket of `unit_id` can be routed to: all admins plus the
        unit's own staff.

        Raises:
            ValidationError: unit_id missing
        """
        if unit_id is None:
            raise ValidationError("unitId is required")
        return await UserRepository.find_assignable(db, unit_id)
