"""Repository for the assignment-chain log."""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from db.enums import AssignmentRole
from db.models import TicketAssignment
from repositories.base_repository import BaseRepository


class TicketAssignmentRepository(BaseRepository[TicketAssignment]):
    """Insert-only access to ticket_assignments."""

    model = TicketAssignment

    @classmethod
    async def append(
        cls,
        db: AsyncSession,
        *,
        ticket_id: int,
        assigned_to_id: int,
        assigned_by_id: int,
        role: AssignmentRole,
        equipment_ids: Optional[List[int]] = None,
        note: Optional[str] = None,
    ) -> TicketAssignment:
        """
        Append one hop to the chain log.

        Flushes without committing so the entry lands in the caller's
        transaction together with the ticket mutation.
        """
        return await cls.create(
            db,
            obj_in={
                "ticket_id": ticket_id,
                "assigned_to_id": assigned_to_id,
                "assigned_by_id": assigned_by_id,
                "role": role,
                "equipment_ids": list(equipment_ids) if equipment_ids else None,
                "note": note,
            },
            commit=False,
        )

    @classmethod
    async def list_for_ticket(cls, db: AsyncSession, ticket_id: int) -> List[TicketAssignment]:
        """Chain entries of a ticket, oldest first."""
        return await cls.find_all(
            db,
            filters={"ticket_id": ticket_id},
            order_by=[TicketAssignment.created_at, TicketAssignment.id],
        )
