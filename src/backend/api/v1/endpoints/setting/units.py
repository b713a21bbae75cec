"""
Unit API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas import UnitRead
from api.services.reference_service import ReferenceService
from core.database import get_session
from core.dependencies import get_current_identity
from core.security import CallerIdentity

router = APIRouter()


@router.get("", response_model=List[UnitRead])
async def list_units(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
):
    """
    List all units ordered by name.

    **Permission:** Authenticated users (any role)
    """
    return await ReferenceService.list_units(db)
