"""
User API endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas import AssignableUserRead
from api.services.reference_service import ReferenceService
from core.database import get_session
from core.dependencies import get_current_identity
from core.security import CallerIdentity

router = APIRouter()


@router.get("/assignable", response_model=List[AssignableUserRead])
async def list_assignable_users(
    unit_id: Optional[int] = Query(None, alias="unitId"),
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
):
    """
    Users a ticket of the given unit can be assigned to.

    Returns every admin plus the unit's managers and employees, ordered by
    role then name.

    **Permission:** Authenticated users (any role)

    **Raises:**
        400: unitId missing
    """
    return await ReferenceService.list_assignable_users(db, unit_id)
