"""
Ticket API endpoints.

This module provides endpoints for the ticket lifecycle:
- Creation by employees (own unit) and admins (any unit)
- Role queues and unit listings
- Assignment chain: admin -> manager -> employee, plus single-step assignment
- Employee work (start, work update, resolve)
- Manager verification and admin closure

**Authentication:** Every endpoint requires a bearer token. Role and
ownership rules are enforced by the workflow engine; violations surface as
403, status preconditions as 400.

Fixed paths (/all, /pending, /mine, ...) are declared before /{ticket_id}.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas import (
    AssignEmployeeRequest,
    AssignManagerRequest,
    AssignRequest,
    ResolveRequest,
    TicketAssignmentRead,
    TicketCreate,
    TicketRead,
    TicketUpdate,
    VerifyRequest,
    WorkUpdateRequest,
)
from api.services.ticket_service import TicketService
from api.services.ticket_visibility import Queue
from core.database import get_session
from core.dependencies import get_current_identity, get_ticket_service
from core.security import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=TicketRead, status_code=201)
async def create_ticket(
    ticket_data: TicketCreate,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Raise a new ticket in status Pending.

    **Permission:** Employees (ticket goes to their own unit) and admins
    (`unitId` required). Managers cannot create tickets.

    **Raises:**
        400: Missing field, unknown priority, or no unit
        403: Caller is a manager
        404: Unit does not exist
    """
    return await service.create(db, identity, ticket_data)


# ==================== Queues ====================


@router.get("/all", response_model=List[TicketRead])
async def list_all_tickets(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Every ticket, newest first.

    **Permission:** Admin only
    """
    return await service.list_queue(db, identity, Queue.ALL)


@router.get("/pending", response_model=List[TicketRead])
async def list_pending_tickets(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Tickets still waiting for a first assignment.

    **Permission:** Admin only
    """
    return await service.list_queue(db, identity, Queue.PENDING)


@router.get("/mine", response_model=List[TicketRead])
async def list_my_tickets(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """Tickets raised by the caller."""
    return await service.list_queue(db, identity, Queue.MINE)


@router.get("/admin/assigned", response_model=List[TicketRead])
async def list_admin_queue(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Admin work queue: own tickets, verified tickets awaiting closure, and
    anything with a single-step assignee.

    **Permission:** Admin only
    """
    return await service.list_queue(db, identity, Queue.ADMIN_ASSIGNED)


@router.get("/manager/assigned", response_model=List[TicketRead])
async def list_manager_queue(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Manager work queue: tickets assigned to the caller plus resolved tickets
    of the caller's unit awaiting verification.

    **Permission:** Manager only
    """
    return await service.list_queue(db, identity, Queue.MANAGER_ASSIGNED)


@router.get("/employee/assigned", response_model=List[TicketRead])
async def list_employee_queue(
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Employee work queue.

    **Permission:** Employee only
    """
    return await service.list_queue(db, identity, Queue.EMPLOYEE_ASSIGNED)


@router.get("/unit/{unit_id}", response_model=List[TicketRead])
async def list_unit_tickets(
    unit_id: int,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Tickets of one unit.

    **Permission:** Admins, or members of that unit
    """
    return await service.list_unit(db, identity, unit_id)


# ==================== Single ticket ====================


@router.get("/{ticket_id}", response_model=TicketRead)
async def get_ticket(
    ticket_id: int,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Read one ticket.

    **Permission:** Admins; otherwise the creator, any assignee, or a member
    of the ticket's unit
    """
    return await service.get(db, identity, ticket_id)


@router.get("/{ticket_id}/assignments", response_model=List[TicketAssignmentRead])
async def list_ticket_assignments(
    ticket_id: int,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """Assignment-chain log of a ticket, oldest first."""
    return await service.list_assignments(db, identity, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketRead)
async def update_ticket(
    ticket_id: int,
    update_data: TicketUpdate,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Generic update of status, priority, category and comment.

    **Status targets:** employee -> In Progress, manager -> Resolved,
    admin -> any status (override).

    **Permission:** Admins; others within their own unit

    **Raises:**
        400: Status outside the caller's targets, or a move the workflow forbids
        403: Ticket belongs to another unit
    """
    changes = update_data.model_dump(exclude_unset=True)
    return await service.update(db, identity, ticket_id, changes)


# ==================== Assignment ====================


@router.post("/{ticket_id}/assign", response_model=TicketRead)
async def assign_ticket(
    ticket_id: int,
    assign_data: AssignRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Single-step assignment by user id or, failing that, by name.

    A name matching no user is stored as free text and never grants access.

    **Permission:** Admin or manager
    """
    return await service.assign(db, identity, ticket_id, assign_data)


@router.post("/{ticket_id}/assign-manager", response_model=TicketRead)
async def assign_manager(
    ticket_id: int,
    assign_data: AssignManagerRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Route a ticket to a manager.

    **Permission:** Admin only
    """
    return await service.assign_manager(db, identity, ticket_id, assign_data)


@router.post("/{ticket_id}/assign-employee", response_model=TicketRead)
async def assign_employee(
    ticket_id: int,
    assign_data: AssignEmployeeRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Hand a ticket to an employee.

    **Permission:** The manager the ticket was routed to
    """
    return await service.assign_employee(db, identity, ticket_id, assign_data)


# ==================== Work and review ====================


@router.patch("/{ticket_id}/start", response_model=TicketRead)
async def start_ticket(
    ticket_id: int,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Record that work started.

    **Permission:** The assigned employee
    """
    return await service.start(db, identity, ticket_id)


@router.patch("/{ticket_id}/work-update", response_model=TicketRead)
async def work_update(
    ticket_id: int,
    work_data: WorkUpdateRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Update the work note and equipment used. Repeatable.

    **Permission:** The assigned employee
    """
    return await service.work_update(db, identity, ticket_id, work_data)


@router.patch("/{ticket_id}/resolve", response_model=TicketRead)
async def resolve_ticket(
    ticket_id: int,
    resolve_data: ResolveRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Mark the work done.

    **Permission:** The assigned employee
    """
    return await service.resolve(db, identity, ticket_id, resolve_data)


@router.patch("/{ticket_id}/verify", response_model=TicketRead)
async def verify_ticket(
    ticket_id: int,
    verify_data: VerifyRequest,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Accept the resolution.

    **Permission:** The chain manager, or a manager of the ticket's department
    """
    return await service.verify(db, identity, ticket_id, verify_data)


@router.patch("/{ticket_id}/close", response_model=TicketRead)
async def close_ticket(
    ticket_id: int,
    db: AsyncSession = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
    service: TicketService = Depends(get_ticket_service),
):
    """
    Close a verified ticket.

    **Permission:** Admin only
    """
    return await service.close(db, identity, ticket_id)
