"""
Ticket workflow engine.

Every mutation runs as one transaction:
1. Load the ticket and check role, ownership and status
2. Write the ticket conditionally on the status that was read
3. Append an assignment-chain entry when a hop is made
4. Commit, then hand any assignment notice to the dispatcher

A conditional write that matches no row means another writer moved the
ticket first; the transaction is rolled back and PreconditionError raised.
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas import (
    AssignEmployeeRequest,
    AssignManagerRequest,
    AssignRequest,
    ResolveRequest,
    TicketCreate,
    VerifyRequest,
    WorkUpdateRequest,
)
from api.services.notification_service import AssignmentNotice, NotificationDispatcher
from api.services.ticket_visibility import Queue, queue_predicate, require_view, unit_predicate
from api.services.ticket_workflow import (
    IMMUTABLE_FIELDS,
    Action,
    Assignee,
    ResolvedAssignee,
    UnresolvedAssignee,
    check_status_update,
    next_status,
    normalize_priority,
    parse_status,
    phase_timestamps,
    require_employee_assignee,
    require_employee_editor,
    require_role,
    verification_note_field,
)
from core.config import WorkflowSettings
from core.decorators import database_query, transactional_database_operation
from core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
    WorkflowError,
)
from core.security import CallerIdentity
from db.enums import AssignmentRole, Role, TicketStatus
from db.models import Ticket, TicketAssignment, User, utc_now
from repositories import (
    TicketAssignmentRepository,
    TicketRepository,
    UnitRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

REQUIRED_CREATE_FIELDS = ("title", "description", "category", "department")


def log_rejections(operation: str) -> Callable:
    """Log workflow rejections at WARNING and re-raise them."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, db: AsyncSession, identity: CallerIdentity, *args, **kwargs):
            try:
                return await func(self, db, identity, *args, **kwargs)
            except WorkflowError as e:
                logger.warning(
                    f"[{operation}] rejected for {identity.role.value} {identity.id}: "
                    f"{type(e).__name__}: {e.message}"
                )
                raise

        return wrapper

    return decorator


class TicketService:
    """Ticket lifecycle, assignment chain and visibility."""

    def __init__(self, workflow: WorkflowSettings, notifier: NotificationDispatcher):
        self.workflow = workflow
        self.notifier = notifier

    # ==================== Helpers ====================

    @staticmethod
    async def _load(db: AsyncSession, ticket_id: int) -> Ticket:
        ticket = await TicketRepository.find_by_id(db, ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    @staticmethod
    async def _write(
        db: AsyncSession,
        ticket: Ticket,
        values: Dict[str, Any],
        identity: CallerIdentity,
        action: str,
    ) -> Ticket:
        """Conditionally write `values`, keyed on the status that was read."""
        previous = ticket.status
        values = {**values, "updated_at": utc_now()}

        if not await TicketRepository.update_if_status(db, ticket, previous, values):
            raise PreconditionError("Ticket status changed concurrently")

        logger.info(
            f"Ticket {ticket.id} {action}: {previous.value} -> {ticket.status.value} "
            f"by {identity.role.value} {identity.id}"
        )
        return ticket

    @staticmethod
    def _notice(ticket: Ticket, user: User, role: AssignmentRole, identity: CallerIdentity,
                note: Optional[str]) -> AssignmentNotice:
        return AssignmentNotice(
            ticket_id=ticket.id,
            ticket_title=ticket.title,
            role=role,
            recipient_id=user.id,
            recipient_name=user.name,
            recipient_email=user.email,
            recipient_phone=user.phone_number,
            assigned_by_id=identity.id,
            note=note,
        )

    def _notify(self, notice: Optional[AssignmentNotice]) -> None:
        if notice is not None:
            self.notifier.dispatch(notice)

    # ==================== Creation ====================

    @log_rejections("create")
    async def create(self, db: AsyncSession, identity: CallerIdentity, data: TicketCreate) -> Ticket:
        return await self._create(db, identity, data)

    @transactional_database_operation("create_ticket")
    async def _create(self, db: AsyncSession, identity: CallerIdentity, data: TicketCreate) -> Ticket:
        if identity.role is Role.MANAGER:
            raise AuthorizationError("Managers cannot create tickets")

        missing = [f for f in REQUIRED_CREATE_FIELDS if not (getattr(data, f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        if identity.role is Role.EMPLOYEE:
            if identity.unit_id is None:
                raise ValidationError("You are not assigned to a unit")
            unit_id = identity.unit_id
        else:
            if data.unit_id is None:
                raise ValidationError("unitId is required")
            if await UnitRepository.find_by_id(db, data.unit_id) is None:
                raise NotFoundError(f"Unit {data.unit_id} not found")
            unit_id = data.unit_id

        ticket = await TicketRepository.create(
            db,
            obj_in={
                "title": data.title.strip(),
                "description": data.description.strip(),
                "category": data.category.strip(),
                "priority": normalize_priority(data.priority, self.workflow.default_priority),
                "department": data.department.strip(),
                "floor": data.floor,
                "room": data.room,
                "bed": data.bed,
                "unit_id": unit_id,
                "equipment_id": data.equipment_id,
                "status": TicketStatus.PENDING,
                "created_by_id": identity.id,
            },
            commit=False,
        )
        logger.info(
            f"Ticket {ticket.id} created in unit {unit_id} by {identity.role.value} {identity.id}"
        )
        return ticket

    # ==================== Reads ====================

    @log_rejections("get")
    @database_query("get_ticket")
    async def get(self, db: AsyncSession, identity: CallerIdentity, ticket_id: int) -> Ticket:
        ticket = await self._load(db, ticket_id)
        require_view(ticket, identity)
        return ticket

    @log_rejections("list_queue")
    @database_query("list_tickets")
    async def list_queue(self, db: AsyncSession, identity: CallerIdentity, queue: Queue) -> List[Ticket]:
        return await TicketRepository.find_matching(db, queue_predicate(queue, identity))

    @log_rejections("list_unit")
    @database_query("list_unit_tickets")
    async def list_unit(self, db: AsyncSession, identity: CallerIdentity, unit_id: int) -> List[Ticket]:
        return await TicketRepository.find_matching(db, unit_predicate(unit_id, identity))

    @log_rejections("list_assignments")
    @database_query("list_assignments")
    async def list_assignments(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int
    ) -> List[TicketAssignment]:
        ticket = await self._load(db, ticket_id)
        require_view(ticket, identity)
        return await TicketAssignmentRepository.list_for_ticket(db, ticket.id)

    # ==================== Generic update ====================

    @log_rejections("update")
    async def update(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, changes: Dict[str, Any]
    ) -> Ticket:
        """
        Apply a partial update of status, priority, category and comment.

        `changes` holds only the fields the caller sent (snake_case).
        """
        return await self._update(db, identity, ticket_id, changes)

    @transactional_database_operation("update_ticket")
    async def _update(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, changes: Dict[str, Any]
    ) -> Ticket:
        forbidden = sorted(IMMUTABLE_FIELDS.intersection(changes))
        if forbidden:
            raise ValidationError(f"Field(s) cannot be changed: {', '.join(forbidden)}")

        ticket = await self._load(db, ticket_id)
        if not identity.is_admin and identity.unit_id != ticket.unit_id:
            raise AuthorizationError("You can only update tickets of your own unit")
        if identity.role is Role.EMPLOYEE:
            require_employee_editor(ticket, identity)

        values: Dict[str, Any] = {}
        now = utc_now()

        if changes.get("status") is not None:
            requested = parse_status(changes["status"])
            check_status_update(identity.role, ticket.status, requested)
            values["status"] = requested
            values.update(phase_timestamps(ticket, requested, now))

        if changes.get("priority") is not None:
            values["priority"] = normalize_priority(changes["priority"], self.workflow.default_priority)

        if changes.get("category") is not None:
            category = changes["category"].strip()
            if not category:
                raise ValidationError("category cannot be empty")
            values["category"] = category

        if "comment" in changes:
            values["comment"] = changes["comment"]

        if not values:
            return ticket

        return await self._write(db, ticket, values, identity, "update")

    # ==================== Assignment chain ====================

    @log_rejections("assign_manager")
    async def assign_manager(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignManagerRequest
    ) -> Ticket:
        ticket, notice = await self._assign_manager(db, identity, ticket_id, data)
        self._notify(notice)
        return ticket

    @transactional_database_operation("assign_manager")
    async def _assign_manager(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignManagerRequest
    ) -> Tuple[Ticket, AssignmentNotice]:
        require_role(Action.ASSIGN_MANAGER, identity.role)
        ticket = await self._load(db, ticket_id)
        status = next_status(Action.ASSIGN_MANAGER, identity.role, ticket.status)

        manager = await UserRepository.find_by_id(db, data.manager_id)
        if manager is None:
            raise NotFoundError(f"User {data.manager_id} not found")
        if manager.role is not Role.MANAGER:
            raise ValidationError(f"User {manager.id} is not a manager")

        await self._write(
            db,
            ticket,
            {"assigned_manager_id": manager.id, "status": status},
            identity,
            "assign_manager",
        )
        await TicketAssignmentRepository.append(
            db,
            ticket_id=ticket.id,
            assigned_to_id=manager.id,
            assigned_by_id=identity.id,
            role=AssignmentRole.MANAGER,
            equipment_ids=data.required_equipment_ids,
            note=data.note,
        )
        return ticket, self._notice(ticket, manager, AssignmentRole.MANAGER, identity, data.note)

    @log_rejections("assign_employee")
    async def assign_employee(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignEmployeeRequest
    ) -> Ticket:
        ticket, notice = await self._assign_employee(db, identity, ticket_id, data)
        self._notify(notice)
        return ticket

    @transactional_database_operation("assign_employee")
    async def _assign_employee(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignEmployeeRequest
    ) -> Tuple[Ticket, AssignmentNotice]:
        require_role(Action.ASSIGN_EMPLOYEE, identity.role)
        ticket = await self._load(db, ticket_id)
        if ticket.assigned_manager_id != identity.id:
            raise AuthorizationError("Not your ticket")
        status = next_status(Action.ASSIGN_EMPLOYEE, identity.role, ticket.status)

        employee = await UserRepository.find_by_id(db, data.employee_id)
        if employee is None:
            raise NotFoundError(f"User {data.employee_id} not found")
        if employee.role is not Role.EMPLOYEE:
            raise ValidationError(f"User {employee.id} is not an employee")

        await self._write(
            db,
            ticket,
            {"assigned_employee_id": employee.id, "status": status},
            identity,
            "assign_employee",
        )
        await TicketAssignmentRepository.append(
            db,
            ticket_id=ticket.id,
            assigned_to_id=employee.id,
            assigned_by_id=identity.id,
            role=AssignmentRole.EMPLOYEE,
            equipment_ids=data.required_equipment_ids,
            note=data.note,
        )
        return ticket, self._notice(ticket, employee, AssignmentRole.EMPLOYEE, identity, data.note)

    @staticmethod
    async def resolve_assignee(db: AsyncSession, data: AssignRequest) -> Tuple[Assignee, Optional[User]]:
        """
        Resolve the single-step assignee: user id first, then exact name.

        A name that matches no user yields an UnresolvedAssignee.

        Raises:
            ValidationError: Neither id nor name supplied
            NotFoundError: The id matches no user and no name was given
        """
        name = (data.assigned_to_name or "").strip()
        if data.assigned_to_id is None and not name:
            raise ValidationError("assignedToId or assignedToName is required")

        if data.assigned_to_id is not None:
            user = await UserRepository.find_by_id(db, data.assigned_to_id)
            if user is not None:
                return ResolvedAssignee(user_id=user.id, name=user.name, role=user.role), user
            if not name:
                raise NotFoundError(f"User {data.assigned_to_id} not found")

        user = await UserRepository.find_by_name(db, name)
        if user is not None:
            return ResolvedAssignee(user_id=user.id, name=user.name, role=user.role), user
        return UnresolvedAssignee(name=name), None

    @log_rejections("assign")
    async def assign(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignRequest
    ) -> Ticket:
        ticket, notice = await self._assign(db, identity, ticket_id, data)
        self._notify(notice)
        return ticket

    @transactional_database_operation("assign_ticket")
    async def _assign(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: AssignRequest
    ) -> Tuple[Ticket, Optional[AssignmentNotice]]:
        require_role(Action.ASSIGN, identity.role)
        ticket = await self._load(db, ticket_id)
        if not identity.is_admin and identity.unit_id != ticket.unit_id:
            raise AuthorizationError("You can only assign tickets of your own unit")
        status = next_status(Action.ASSIGN, identity.role, ticket.status)

        assignee, user = await self.resolve_assignee(db, data)

        if isinstance(assignee, UnresolvedAssignee):
            await self._write(
                db,
                ticket,
                {
                    "assigned_to_id": None,
                    "assigned_to_name": assignee.name,
                    "assigned_employee_id": None,
                    "status": status,
                },
                identity,
                "assign",
            )
            logger.info(f"Ticket {ticket.id} assigned to unregistered name '{assignee.name}'")
            return ticket, None

        if assignee.role is Role.ADMIN:
            raise ValidationError("Tickets can only be assigned to managers or employees")
        values: Dict[str, Any] = {
            "assigned_to_id": assignee.user_id,
            "assigned_to_name": assignee.name,
            "status": status,
        }
        # Hop columns track the single-step assignee
        if assignee.role is Role.MANAGER:
            label = AssignmentRole.MANAGER
            values["assigned_manager_id"] = assignee.user_id
        else:
            label = AssignmentRole.EMPLOYEE
            values["assigned_employee_id"] = assignee.user_id

        await self._write(db, ticket, values, identity, "assign")
        await TicketAssignmentRepository.append(
            db,
            ticket_id=ticket.id,
            assigned_to_id=assignee.user_id,
            assigned_by_id=identity.id,
            role=label,
            equipment_ids=data.required_equipment_ids,
            note=data.note,
        )
        return ticket, self._notice(ticket, user, label, identity, data.note)

    # ==================== Employee work ====================

    @log_rejections("start")
    @transactional_database_operation("start_ticket")
    async def start(self, db: AsyncSession, identity: CallerIdentity, ticket_id: int) -> Ticket:
        require_role(Action.START, identity.role)
        ticket = await self._load(db, ticket_id)
        require_employee_assignee(ticket, identity)
        status = next_status(Action.START, identity.role, ticket.status)

        values: Dict[str, Any] = {"status": status}
        values.update(phase_timestamps(ticket, status, utc_now(), starting=True))
        return await self._write(db, ticket, values, identity, "start")

    @log_rejections("work_update")
    @transactional_database_operation("work_update")
    async def work_update(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: WorkUpdateRequest
    ) -> Ticket:
        require_role(Action.WORK_UPDATE, identity.role)
        ticket = await self._load(db, ticket_id)
        require_employee_assignee(ticket, identity)
        status = next_status(Action.WORK_UPDATE, identity.role, ticket.status)

        values: Dict[str, Any] = {"status": status}
        if data.work_note is not None:
            values["work_note"] = data.work_note
        if data.equipments_used is not None:
            values["equipments_used"] = list(data.equipments_used)
        return await self._write(db, ticket, values, identity, "work_update")

    @log_rejections("resolve")
    @transactional_database_operation("resolve_ticket")
    async def resolve(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: ResolveRequest
    ) -> Ticket:
        require_role(Action.RESOLVE, identity.role)
        ticket = await self._load(db, ticket_id)
        require_employee_assignee(ticket, identity)
        status = next_status(Action.RESOLVE, identity.role, ticket.status)

        values: Dict[str, Any] = {"status": status}
        values.update(phase_timestamps(ticket, status, utc_now()))
        if data.work_note is not None:
            values["work_note"] = data.work_note
        if data.equipments_used is not None:
            values["equipments_used"] = list(data.equipments_used)
        return await self._write(db, ticket, values, identity, "resolve")

    # ==================== Review ====================

    @log_rejections("verify")
    @transactional_database_operation("verify_ticket")
    async def verify(
        self, db: AsyncSession, identity: CallerIdentity, ticket_id: int, data: VerifyRequest
    ) -> Ticket:
        require_role(Action.VERIFY, identity.role)
        ticket = await self._load(db, ticket_id)
        note_field = verification_note_field(
            ticket, identity, allow_department=self.workflow.allow_department_verification
        )
        status = next_status(Action.VERIFY, identity.role, ticket.status)

        values: Dict[str, Any] = {"status": status}
        if data.note is not None:
            values[note_field] = data.note
        return await self._write(db, ticket, values, identity, "verify")

    @log_rejections("close")
    @transactional_database_operation("close_ticket")
    async def close(self, db: AsyncSession, identity: CallerIdentity, ticket_id: int) -> Ticket:
        require_role(Action.CLOSE, identity.role)
        ticket = await self._load(db, ticket_id)
        status = next_status(Action.CLOSE, identity.role, ticket.status)

        values: Dict[str, Any] = {"status": status}
        values.update(phase_timestamps(ticket, status, utc_now()))
        return await self._write(db, ticket, values, identity, "close")
