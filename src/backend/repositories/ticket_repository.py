"""Repository for Ticket database operations."""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from db.enums import TicketStatus
from db.models import Ticket
from repositories.base_repository import BaseRepository


class TicketRepository(BaseRepository[Ticket]):
    """Repository for ticket operations."""

    model = Ticket

    # Set once; a stored value always wins over a new one
    PHASE_COLUMNS = ("started_at", "completed_at", "closed_at")

    @classmethod
    async def find_matching(
        cls,
        db: AsyncSession,
        predicate: Optional[ColumnElement[bool]] = None,
    ) -> List[Ticket]:
        """
        List tickets matching a visibility predicate, newest creation first.

        Args:
            db: Database session
            predicate: SQL boolean expression; None selects every ticket
        """
        stmt = (
            select(Ticket)
            .where(predicate if predicate is not None else true())
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def update_if_status(
        cls,
        db: AsyncSession,
        ticket: Ticket,
        expected_status: TicketStatus,
        values: Dict[str, Any],
    ) -> bool:
        """
        Write `values` only if the stored status still equals `expected_status`.

        Phase timestamps are written with COALESCE so a value stored by a
        concurrent writer is kept. On success the in-session `ticket` is
        refreshed from the row.

        Returns:
            True if the row was updated, False if its status had changed
        """
        stmt = (
            update(Ticket)
            .where(Ticket.id == ticket.id, Ticket.status == expected_status)
            .values(**cls._phase_safe(values))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            return False

        await db.refresh(ticket)
        return True

    @classmethod
    def _phase_safe(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: func.coalesce(getattr(Ticket, key), value) if key in cls.PHASE_COLUMNS else value
            for key, value in values.items()
        }
