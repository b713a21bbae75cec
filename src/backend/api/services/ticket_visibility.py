"""
Visibility resolver.

Derives, from the caller identity, the SQL predicate selecting the tickets a
listing query may return, and decides whether a single ticket may be read.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from core.exceptions import AuthorizationError
from core.security import CallerIdentity
from db.enums import Role, TicketStatus
from db.models import Ticket


class Queue(str, Enum):
    ADMIN_ASSIGNED = "admin_assigned"
    ALL = "all"
    PENDING = "pending"
    MANAGER_ASSIGNED = "manager_assigned"
    EMPLOYEE_ASSIGNED = "employee_assigned"
    MINE = "mine"


# Queue -> role allowed to read it (None: any authenticated caller)
QUEUE_ROLES = {
    Queue.ADMIN_ASSIGNED: Role.ADMIN,
    Queue.ALL: Role.ADMIN,
    Queue.PENDING: Role.ADMIN,
    Queue.MANAGER_ASSIGNED: Role.MANAGER,
    Queue.EMPLOYEE_ASSIGNED: Role.EMPLOYEE,
    Queue.MINE: None,
}


def queue_predicate(queue: Queue, identity: CallerIdentity) -> Optional[ColumnElement[bool]]:
    """
    Predicate for one of the role queues.

    Returns None for the unrestricted admin listing.

    Raises:
        AuthorizationError: The queue belongs to another role
    """
    required = QUEUE_ROLES[queue]
    if required is not None and identity.role is not required:
        raise AuthorizationError(f"Only {required.value} may list this queue")

    if queue is Queue.ALL:
        return None

    if queue is Queue.PENDING:
        return Ticket.status == TicketStatus.PENDING

    if queue is Queue.ADMIN_ASSIGNED:
        return or_(
            Ticket.created_by_id == identity.id,
            Ticket.status == TicketStatus.VERIFIED,
            Ticket.assigned_to_id.is_not(None),
        )

    if queue is Queue.MANAGER_ASSIGNED:
        needs_verification = (
            and_(Ticket.unit_id == identity.unit_id, Ticket.status == TicketStatus.RESOLVED)
            if identity.unit_id is not None
            else false()
        )
        return or_(
            Ticket.assigned_to_id == identity.id,
            Ticket.assigned_manager_id == identity.id,
            needs_verification,
        )

    if queue is Queue.EMPLOYEE_ASSIGNED:
        return or_(
            Ticket.assigned_employee_id == identity.id,
            Ticket.assigned_to_id == identity.id,
        )

    return Ticket.created_by_id == identity.id


def unit_predicate(unit_id: int, identity: CallerIdentity) -> ColumnElement[bool]:
    """Predicate for a unit listing; admins or members of that unit only."""
    if not identity.is_admin and identity.unit_id != unit_id:
        raise AuthorizationError("You can only list tickets of your own unit")
    return Ticket.unit_id == unit_id


def can_view(ticket: Ticket, identity: CallerIdentity) -> bool:
    """Single-ticket read rule."""
    if identity.is_admin:
        return True

    if identity.id in (
        ticket.created_by_id,
        ticket.assigned_to_id,
        ticket.assigned_manager_id,
        ticket.assigned_employee_id,
    ):
        return True

    return identity.unit_id is not None and identity.unit_id == ticket.unit_id


def require_view(ticket: Ticket, identity: CallerIdentity) -> None:
    if not can_view(ticket, identity):
        raise AuthorizationError("You do not have access to this ticket")
