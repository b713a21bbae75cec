"""
Integration tests for the ticket workflow engine against the database.

Tests:
- Creation rules per role
- Full lifecycle and out-of-order steps
- Assignment chain log and hop ownership
- Single-step assignment with resolved and unresolved assignees
- Generic update targets, admin override and immutable fields
- Conditional writes under a concurrent status change
- Notification failures never affecting the ticket
"""

from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas import (
    AssignEmployeeRequest,
    AssignManagerRequest,
    AssignRequest,
    ResolveRequest,
    TicketCreate,
    TicketUpdate,
    VerifyRequest,
    WorkUpdateRequest,
)
from api.services.notification_service import NotificationDispatcher
from api.services.ticket_service import TicketService
from core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from db.enums import AssignmentRole, TicketPriority, TicketStatus
from db.models import Ticket, Unit, User
from repositories import TicketAssignmentRepository, TicketRepository
from tests.factories import FailingSink, TicketFactory, UserFactory, persist, reload


def _create_payload(**overrides) -> TicketCreate:
    values = dict(
        title="Infusion pump occlusion alarm",
        description="Pump alarms for occlusion with a clear line",
        category="Infusion pump",
        priority="critical",
        department="Biomedical",
        floor="3",
        room="312",
        bed="A",
    )
    values.update(overrides)
    return TicketCreate(**values)


@pytest_asyncio.fixture
async def pending_ticket(db_session: AsyncSession, unit_3: Unit, employee: User) -> Ticket:
    return await persist(db_session, TicketFactory.create(unit_id=unit_3.id, created_by_id=employee.id))


@pytest_asyncio.fixture
async def in_progress_ticket(
    db_session: AsyncSession, unit_3: Unit, admin: User, manager: User, employee: User
) -> Ticket:
    """Ticket routed admin -> manager -> employee."""
    return await persist(
        db_session,
        TicketFactory.create(
            unit_id=unit_3.id,
            created_by_id=admin.id,
            status=TicketStatus.IN_PROGRESS,
            assigned_manager_id=manager.id,
            assigned_employee_id=employee.id,
        ),
    )


class TestCreate:
    """Ticket creation rules."""

    @pytest.mark.asyncio
    async def test_employee_creates_in_own_unit(
        self, db_session, ticket_service, identity_for, employee, unit_2, unit_3
    ):
        ticket = await ticket_service.create(
            db_session, identity_for(employee), _create_payload(unit_id=unit_2.id)
        )

        assert ticket.unit_id == unit_3.id
        assert ticket.created_by_id == employee.id
        assert ticket.status is TicketStatus.PENDING
        assert ticket.priority is TicketPriority.HIGH
        assert ticket.started_at is None

    @pytest.mark.asyncio
    async def test_missing_priority_uses_default(self, db_session, ticket_service, identity_for, employee):
        ticket = await ticket_service.create(db_session, identity_for(employee), _create_payload(priority=None))
        assert ticket.priority is TicketPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_unknown_priority_is_rejected(self, db_session, ticket_service, identity_for, employee):
        with pytest.raises(ValidationError):
            await ticket_service.create(db_session, identity_for(employee), _create_payload(priority="urgent"))

    @pytest.mark.asyncio
    async def test_blank_required_field_is_rejected(self, db_session, ticket_service, identity_for, employee):
        with pytest.raises(ValidationError, match="title"):
            await ticket_service.create(db_session, identity_for(employee), _create_payload(title="   "))

    @pytest.mark.asyncio
    async def test_employee_without_unit_is_rejected(self, db_session, ticket_service, identity_for):
        drifter = await persist(db_session, UserFactory.create_employee(unit_id=None))
        with pytest.raises(ValidationError):
            await ticket_service.create(db_session, identity_for(drifter), _create_payload())

    @pytest.mark.asyncio
    async def test_admin_must_name_an_existing_unit(
        self, db_session, ticket_service, identity_for, admin, unit_2
    ):
        with pytest.raises(ValidationError):
            await ticket_service.create(db_session, identity_for(admin), _create_payload())
        with pytest.raises(NotFoundError):
            await ticket_service.create(db_session, identity_for(admin), _create_payload(unit_id=9999))

        ticket = await ticket_service.create(db_session, identity_for(admin), _create_payload(unit_id=unit_2.id))
        assert ticket.unit_id == unit_2.id

    @pytest.mark.asyncio
    async def test_manager_cannot_create(self, db_session, ticket_service, identity_for, manager):
        with pytest.raises(AuthorizationError):
            await ticket_service.create(db_session, identity_for(manager), _create_payload())


class TestLifecycle:
    """create -> assign manager -> assign employee -> work -> verify -> close."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(
        self, db_session, ticket_service, notifier, recording_sink, identity_for,
        admin, manager, employee, unit_3,
    ):
        as_admin, as_manager, as_employee = identity_for(admin), identity_for(manager), identity_for(employee)

        ticket = await ticket_service.create(db_session, as_employee, _create_payload())
        ticket_id = ticket.id

        # Out of order before any assignment
        with pytest.raises(PreconditionError):
            await ticket_service.close(db_session, as_admin, ticket_id)

        ticket = await ticket_service.assign_manager(
            db_session, as_admin, ticket_id,
            AssignManagerRequest(manager_id=manager.id, required_equipment_ids=[7, 9], note="Urgent"),
        )
        assert ticket.status is TicketStatus.IN_PROGRESS
        assert ticket.assigned_manager_id == manager.id

        ticket = await ticket_service.assign_employee(
            db_session, as_manager, ticket_id, AssignEmployeeRequest(employee_id=employee.id)
        )
        assert ticket.status is TicketStatus.IN_PROGRESS
        assert ticket.assigned_manager_id == manager.id
        assert ticket.assigned_employee_id == employee.id

        with pytest.raises(PreconditionError):
            await ticket_service.verify(db_session, as_manager, ticket_id, VerifyRequest())
        with pytest.raises(PreconditionError):
            await ticket_service.close(db_session, as_admin, ticket_id)

        ticket = await ticket_service.start(db_session, as_employee, ticket_id)
        started_at = ticket.started_at
        assert started_at is not None

        ticket = await ticket_service.work_update(
            db_session, as_employee, ticket_id,
            WorkUpdateRequest(work_note="Replaced pressure sensor", equipments_used=[7]),
        )
        assert ticket.work_note == "Replaced pressure sensor"
        assert ticket.equipments_used == [7]

        ticket = await ticket_service.resolve(db_session, as_employee, ticket_id, ResolveRequest())
        assert ticket.status is TicketStatus.RESOLVED
        assert ticket.completed_at is not None
        assert ticket.started_at == started_at

        with pytest.raises(PreconditionError):
            await ticket_service.work_update(db_session, as_employee, ticket_id, WorkUpdateRequest(work_note="x"))
        with pytest.raises(PreconditionError):
            await ticket_service.assign_employee(
                db_session, as_manager, ticket_id, AssignEmployeeRequest(employee_id=employee.id)
            )
        with pytest.raises(PreconditionError):
            await ticket_service.close(db_session, as_admin, ticket_id)

        ticket = await ticket_service.verify(db_session, as_manager, ticket_id, VerifyRequest(note="Tested OK"))
        assert ticket.status is TicketStatus.VERIFIED
        assert ticket.manager_review_note == "Tested OK"
        assert ticket.department_review_note is None

        ticket = await ticket_service.close(db_session, as_admin, ticket_id)
        assert ticket.status is TicketStatus.CLOSED
        assert ticket.closed_at is not None

        with pytest.raises(PreconditionError):
            await ticket_service.assign_manager(
                db_session, as_admin, ticket_id, AssignManagerRequest(manager_id=manager.id)
            )
        with pytest.raises(PreconditionError):
            await ticket_service.resolve(db_session, as_employee, ticket_id, ResolveRequest())

        final = await reload(db_session, ticket_id)
        assert final.status is TicketStatus.CLOSED
        assert final.unit_id == unit_3.id
        assert final.created_by_id == employee.id

        entries = await TicketAssignmentRepository.list_for_ticket(db_session, ticket_id)
        assert [(e.role, e.assigned_to_id, e.assigned_by_id) for e in entries] == [
            (AssignmentRole.MANAGER, manager.id, admin.id),
            (AssignmentRole.EMPLOYEE, employee.id, manager.id),
        ]
        assert entries[0].equipment_ids == [7, 9]
        assert entries[0].note == "Urgent"

        await notifier.drain(timeout=1)
        assert [n.recipient_id for n in recording_sink.notices] == [manager.id, employee.id]

    @pytest.mark.asyncio
    async def test_second_start_keeps_first_timestamp(
        self, db_session, ticket_service, identity_for, employee, in_progress_ticket
    ):
        first = await ticket_service.start(db_session, identity_for(employee), in_progress_ticket.id)
        started_at = first.started_at

        second = await ticket_service.start(db_session, identity_for(employee), in_progress_ticket.id)
        assert second.started_at == started_at


class TestOwnership:
    """Only the current employee-assignee may do the work."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["start", "work_update", "resolve"])
    async def test_other_employee_is_rejected(
        self, db_session, ticket_service, identity_for, other_employee, in_progress_ticket, operation
    ):
        ticket_id = in_progress_ticket.id
        caller = identity_for(other_employee)

        with pytest.raises(AuthorizationError, match="Not your ticket"):
            if operation == "start":
                await ticket_service.start(db_session, caller, ticket_id)
            elif operation == "work_update":
                await ticket_service.work_update(
                    db_session, caller, ticket_id, WorkUpdateRequest(work_note="not mine")
                )
            else:
                await ticket_service.resolve(db_session, caller, ticket_id, ResolveRequest())

        unchanged = await reload(db_session, ticket_id)
        assert unchanged.status is TicketStatus.IN_PROGRESS
        assert unchanged.work_note is None
        assert unchanged.started_at is None

    @pytest.mark.asyncio
    async def test_manager_not_on_chain_cannot_assign_employee(
        self, db_session, ticket_service, identity_for, other_manager, employee, in_progress_ticket
    ):
        with pytest.raises(AuthorizationError, match="Not your ticket"):
            await ticket_service.assign_employee(
                db_session, identity_for(other_manager), in_progress_ticket.id,
                AssignEmployeeRequest(employee_id=employee.id),
            )

    @pytest.mark.asyncio
    async def test_manager_hop_requires_a_manager(
        self, db_session, ticket_service, identity_for, admin, employee, pending_ticket
    ):
        with pytest.raises(ValidationError):
            await ticket_service.assign_manager(
                db_session, identity_for(admin), pending_ticket.id, AssignManagerRequest(manager_id=employee.id)
            )
        with pytest.raises(NotFoundError):
            await ticket_service.assign_manager(
                db_session, identity_for(admin), pending_ticket.id, AssignManagerRequest(manager_id=9999)
            )

    @pytest.mark.asyncio
    async def test_only_admin_routes_to_manager(
        self, db_session, ticket_service, identity_for, manager, pending_ticket
    ):
        with pytest.raises(AuthorizationError):
            await ticket_service.assign_manager(
                db_session, identity_for(manager), pending_ticket.id, AssignManagerRequest(manager_id=manager.id)
            )

    @pytest.mark.asyncio
    async def test_missing_ticket(self, db_session, ticket_service, identity_for, admin):
        with pytest.raises(NotFoundError):
            await ticket_service.close(db_session, identity_for(admin), 9999)

    @pytest.mark.asyncio
    async def test_department_manager_verifies_with_department_note(
        self, db_session, ticket_service, identity_for, unit_3, manager, employee, admin
    ):
        peer = await persist(
            db_session,
            UserFactory.create_manager(unit_id=unit_3.id, department="Biomedical"),
        )
        ticket = await persist(
            db_session,
            TicketFactory.create(
                unit_id=unit_3.id,
                created_by_id=admin.id,
                status=TicketStatus.RESOLVED,
                assigned_manager_id=manager.id,
                assigned_employee_id=employee.id,
            ),
        )

        verified = await ticket_service.verify(
            db_session, identity_for(peer), ticket.id, VerifyRequest(note="Checked on ward round")
        )
        assert verified.status is TicketStatus.VERIFIED
        assert verified.department_review_note == "Checked on ward round"
        assert verified.manager_review_note is None


class TestSingleStepAssignment:
    """assign with assignedToId / assignedToName."""

    @pytest.mark.asyncio
    async def test_assign_by_id_logs_and_grants_ownership(
        self, db_session, ticket_service, notifier, recording_sink, identity_for, admin, employee, pending_ticket
    ):
        ticket = await ticket_service.assign(
            db_session, identity_for(admin), pending_ticket.id, AssignRequest(assigned_to_id=employee.id)
        )
        assert ticket.status is TicketStatus.IN_PROGRESS
        assert ticket.assigned_to_id == employee.id
        assert ticket.assigned_to_name == employee.name
        assert ticket.assigned_employee_id == employee.id

        entries = await TicketAssignmentRepository.list_for_ticket(db_session, pending_ticket.id)
        assert [(e.role, e.assigned_to_id) for e in entries] == [(AssignmentRole.EMPLOYEE, employee.id)]

        started = await ticket_service.start(db_session, identity_for(employee), pending_ticket.id)
        assert started.started_at is not None

        await notifier.drain(timeout=1)
        assert [n.recipient_id for n in recording_sink.notices] == [employee.id]

    @pytest.mark.asyncio
    async def test_reassigning_to_another_employee_moves_ownership(
        self, db_session, ticket_service, identity_for, manager, employee, other_employee, in_progress_ticket
    ):
        ticket_id = in_progress_ticket.id
        ticket = await ticket_service.assign(
            db_session, identity_for(manager), ticket_id, AssignRequest(assigned_to_id=other_employee.id)
        )
        assert ticket.assigned_to_id == other_employee.id
        assert ticket.assigned_employee_id == other_employee.id

        with pytest.raises(AuthorizationError, match="Not your ticket"):
            await ticket_service.resolve(db_session, identity_for(employee), ticket_id, ResolveRequest())

        resolved = await ticket_service.resolve(
            db_session, identity_for(other_employee), ticket_id, ResolveRequest(work_note="Swapped sensor")
        )
        assert resolved.status is TicketStatus.RESOLVED

    @pytest.mark.asyncio
    async def test_assigning_a_manager_sets_the_manager_hop(
        self, db_session, ticket_service, identity_for, admin, manager, employee, pending_ticket
    ):
        ticket = await ticket_service.assign(
            db_session, identity_for(admin), pending_ticket.id, AssignRequest(assigned_to_id=manager.id)
        )
        assert ticket.assigned_manager_id == manager.id

        routed = await ticket_service.assign_employee(
            db_session, identity_for(manager), pending_ticket.id, AssignEmployeeRequest(employee_id=employee.id)
        )
        assert routed.assigned_employee_id == employee.id

    @pytest.mark.asyncio
    async def test_unknown_id_falls_back_to_name(
        self, db_session, ticket_service, identity_for, manager, employee, pending_ticket
    ):
        ticket = await ticket_service.assign(
            db_session, identity_for(manager), pending_ticket.id,
            AssignRequest(assigned_to_id=9999, assigned_to_name=employee.name),
        )
        assert ticket.assigned_to_id == employee.id

    @pytest.mark.asyncio
    async def test_unresolved_name_is_stored_without_log_or_ownership(
        self, db_session, ticket_service, notifier, recording_sink, identity_for, admin, employee, pending_ticket
    ):
        ticket = await ticket_service.assign(
            db_session, identity_for(admin), pending_ticket.id,
            AssignRequest(assigned_to_name="External Vendor Ltd"),
        )
        assert ticket.status is TicketStatus.IN_PROGRESS
        assert ticket.assigned_to_id is None
        assert ticket.assigned_to_name == "External Vendor Ltd"
        assert await TicketAssignmentRepository.list_for_ticket(db_session, pending_ticket.id) == []

        with pytest.raises(AuthorizationError):
            await ticket_service.start(db_session, identity_for(employee), pending_ticket.id)

        await notifier.drain(timeout=1)
        assert recording_sink.notices == []

    @pytest.mark.asyncio
    async def test_unknown_id_without_name(self, db_session, ticket_service, identity_for, admin, pending_ticket):
        with pytest.raises(NotFoundError):
            await ticket_service.assign(
                db_session, identity_for(admin), pending_ticket.id, AssignRequest(assigned_to_id=9999)
            )

    @pytest.mark.asyncio
    async def test_empty_request(self, db_session, ticket_service, identity_for, admin, pending_ticket):
        with pytest.raises(ValidationError):
            await ticket_service.assign(db_session, identity_for(admin), pending_ticket.id, AssignRequest())

    @pytest.mark.asyncio
    async def test_employee_cannot_assign(
        self, db_session, ticket_service, identity_for, employee, pending_ticket
    ):
        with pytest.raises(AuthorizationError):
            await ticket_service.assign(
                db_session, identity_for(employee), pending_ticket.id, AssignRequest(assigned_to_id=employee.id)
            )


class TestGenericUpdate:
    """PATCH-style partial updates."""

    @staticmethod
    def _changes(**values):
        return TicketUpdate(**values).model_dump(exclude_unset=True)

    @pytest.mark.asyncio
    async def test_manager_marks_resolved(
        self, db_session, ticket_service, identity_for, manager, in_progress_ticket
    ):
        ticket = await ticket_service.update(
            db_session, identity_for(manager), in_progress_ticket.id, self._changes(status="Resolved")
        )
        assert ticket.status is TicketStatus.RESOLVED
        assert ticket.completed_at is not None

    @pytest.mark.asyncio
    async def test_status_outside_role_targets(
        self, db_session, ticket_service, identity_for, employee, in_progress_ticket
    ):
        with pytest.raises(ValidationError):
            await ticket_service.update(
                db_session, identity_for(employee), in_progress_ticket.id, self._changes(status="Resolved")
            )
        unchanged = await reload(db_session, in_progress_ticket.id)
        assert unchanged.status is TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_manager_of_other_unit(
        self, db_session, ticket_service, identity_for, other_manager, in_progress_ticket
    ):
        with pytest.raises(AuthorizationError):
            await ticket_service.update(
                db_session, identity_for(other_manager), in_progress_ticket.id, self._changes(status="Resolved")
            )

    @pytest.mark.asyncio
    async def test_manager_cannot_skip_to_resolved(
        self, db_session, ticket_service, identity_for, manager, unit_3, employee
    ):
        ticket = await persist(db_session, TicketFactory.create(unit_id=unit_3.id, created_by_id=employee.id))
        with pytest.raises(PreconditionError):
            await ticket_service.update(
                db_session, identity_for(manager), ticket.id, self._changes(status="Resolved")
            )

    @pytest.mark.asyncio
    async def test_admin_override_stamps_phase(self, db_session, ticket_service, identity_for, admin, pending_ticket):
        ticket = await ticket_service.update(
            db_session, identity_for(admin), pending_ticket.id, self._changes(status="Closed", comment="Duplicate")
        )
        assert ticket.status is TicketStatus.CLOSED
        assert ticket.closed_at is not None
        assert ticket.comment == "Duplicate"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["Open", "done", "in progress"])
    async def test_admin_override_validates_membership(
        self, db_session, ticket_service, identity_for, admin, pending_ticket, raw
    ):
        with pytest.raises(ValidationError):
            await ticket_service.update(db_session, identity_for(admin), pending_ticket.id, self._changes(status=raw))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["unit_id", "created_by_id"])
    async def test_immutable_fields(
        self, db_session, ticket_service, identity_for, admin, unit_2, pending_ticket, field
    ):
        with pytest.raises(ValidationError):
            await ticket_service.update(
                db_session, identity_for(admin), pending_ticket.id, self._changes(**{field: unit_2.id})
            )
        unchanged = await reload(db_session, pending_ticket.id)
        assert unchanged.unit_id == pending_ticket.unit_id
        assert unchanged.created_by_id == pending_ticket.created_by_id

    @pytest.mark.asyncio
    async def test_priority_and_category(
        self, db_session, ticket_service, identity_for, employee, pending_ticket
    ):
        ticket = await ticket_service.update(
            db_session, identity_for(employee), pending_ticket.id,
            self._changes(priority="Critical", category="Ventilator"),
        )
        assert ticket.priority is TicketPriority.HIGH
        assert ticket.category == "Ventilator"
        assert ticket.status is TicketStatus.PENDING

    @pytest.mark.asyncio
    async def test_other_employee_cannot_edit_assigned_ticket(
        self, db_session, ticket_service, identity_for, other_employee, in_progress_ticket
    ):
        with pytest.raises(AuthorizationError, match="Not your ticket"):
            await ticket_service.update(
                db_session, identity_for(other_employee), in_progress_ticket.id,
                self._changes(status="In Progress", priority="low", comment="taking this one"),
            )

        unchanged = await reload(db_session, in_progress_ticket.id)
        assert unchanged.priority is TicketPriority.MEDIUM
        assert unchanged.comment is None
        assert unchanged.updated_at == in_progress_ticket.updated_at

    @pytest.mark.asyncio
    async def test_assigned_employee_may_edit(
        self, db_session, ticket_service, identity_for, employee, in_progress_ticket
    ):
        ticket = await ticket_service.update(
            db_session, identity_for(employee), in_progress_ticket.id,
            self._changes(status="In Progress", comment="Waiting for spare part"),
        )
        assert ticket.comment == "Waiting for spare part"
        assert ticket.status is TicketStatus.IN_PROGRESS


class TestConditionalWrite:

    @pytest.mark.asyncio
    async def test_stale_status_yields_precondition_and_no_write(
        self, db_session, ticket_service, identity_for, employee, in_progress_ticket, monkeypatch
    ):
        ticket_id = in_progress_ticket.id
        original_find = TicketRepository.find_by_id

        async def racing_find(db, id_value):
            loaded = await original_find(db, id_value)
            # Another writer resolves the ticket between our read and write
            await db.execute(
                update(Ticket)
                .where(Ticket.id == id_value)
                .values(status=TicketStatus.RESOLVED)
                .execution_options(synchronize_session=False)
            )
            return loaded

        monkeypatch.setattr(TicketRepository, "find_by_id", racing_find)

        with pytest.raises(PreconditionError, match="changed concurrently"):
            await ticket_service.work_update(
                db_session, identity_for(employee), ticket_id, WorkUpdateRequest(work_note="late write")
            )

        monkeypatch.undo()
        unchanged = await reload(db_session, ticket_id)
        assert unchanged.work_note is None

    @pytest.mark.asyncio
    async def test_repository_reports_stale_status(self, db_session, in_progress_ticket):
        ticket = await reload(db_session, in_progress_ticket.id)
        written = await TicketRepository.update_if_status(
            db_session, ticket, TicketStatus.PENDING, {"comment": "should not land"}
        )
        assert written is False

    @pytest.mark.asyncio
    async def test_stored_phase_timestamp_is_never_overwritten(self, db_session, in_progress_ticket):
        first = datetime(2025, 3, 1, 8, 0)
        second = datetime(2025, 3, 1, 9, 30)
        ticket = await reload(db_session, in_progress_ticket.id)

        assert await TicketRepository.update_if_status(
            db_session, ticket, TicketStatus.IN_PROGRESS, {"started_at": first}
        )
        assert await TicketRepository.update_if_status(
            db_session, ticket, TicketStatus.IN_PROGRESS, {"started_at": second, "comment": "second write"}
        )

        assert ticket.started_at == first
        assert ticket.comment == "second write"

    @pytest.mark.asyncio
    async def test_concurrent_start_keeps_first_started_at(
        self, db_session, ticket_service, identity_for, employee, in_progress_ticket, monkeypatch
    ):
        ticket_id = in_progress_ticket.id
        earlier = datetime(2025, 3, 1, 8, 0)
        original_find = TicketRepository.find_by_id

        async def racing_find(db, id_value):
            loaded = await original_find(db, id_value)
            # Another start call stamps the ticket between our read and write
            await db.execute(
                update(Ticket)
                .where(Ticket.id == id_value)
                .values(started_at=earlier)
                .execution_options(synchronize_session=False)
            )
            return loaded

        monkeypatch.setattr(TicketRepository, "find_by_id", racing_find)

        started = await ticket_service.start(db_session, identity_for(employee), ticket_id)

        monkeypatch.undo()
        assert started.started_at == earlier
        stored = await reload(db_session, ticket_id)
        assert stored.started_at == earlier


class TestNotificationFailure:

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_affect_assignment(
        self, db_session, test_settings, identity_for, admin, manager, pending_ticket
    ):
        failing = FailingSink()
        notifier = NotificationDispatcher([failing])
        service = TicketService(test_settings.workflow, notifier)

        ticket = await service.assign_manager(
            db_session, identity_for(admin), pending_ticket.id, AssignManagerRequest(manager_id=manager.id)
        )
        await notifier.drain(timeout=1)

        assert failing.calls == 1
        assert ticket.status is TicketStatus.IN_PROGRESS
        stored = await reload(db_session, pending_ticket.id)
        assert stored.assigned_manager_id == manager.id
