"""
Ticket status state machine.

All status rules live here, keyed by role and current status, so that every
entry point (explicit actions, generic update, admin override) is checked
against the same tables:

    Pending -> In Progress -> Resolved -> Verified -> Closed

Nothing in this module touches the database.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from core.exceptions import AuthorizationError, PreconditionError, ValidationError
from core.security import CallerIdentity
from db.enums import Role, TicketPriority, TicketStatus
from db.models import Ticket

P = TicketStatus.PENDING
IP = TicketStatus.IN_PROGRESS
R = TicketStatus.RESOLVED
V = TicketStatus.VERIFIED
C = TicketStatus.CLOSED

# (role, current status) -> statuses that role may move the ticket to
TRANSITIONS: Dict[Tuple[Role, TicketStatus], FrozenSet[TicketStatus]] = {
    (Role.ADMIN, P): frozenset({IP}),
    (Role.ADMIN, IP): frozenset({IP}),
    (Role.ADMIN, V): frozenset({C}),
    (Role.MANAGER, P): frozenset({IP}),
    (Role.MANAGER, IP): frozenset({IP, R}),
    (Role.MANAGER, R): frozenset({V}),
    (Role.EMPLOYEE, IP): frozenset({IP, R}),
}

# Targets accepted by the generic update operation. Admin entries are an
# override: enum membership is the only check.
UPDATE_TARGETS: Dict[Role, FrozenSet[TicketStatus]] = {
    Role.EMPLOYEE: frozenset({IP}),
    Role.MANAGER: frozenset({R}),
    Role.ADMIN: frozenset(TicketStatus),
}

IMMUTABLE_FIELDS = frozenset({"id", "unit_id", "created_by_id", "created_at"})


class Action(str, Enum):
    ASSIGN = "assign"
    ASSIGN_MANAGER = "assign_manager"
    ASSIGN_EMPLOYEE = "assign_employee"
    START = "start"
    WORK_UPDATE = "work_update"
    RESOLVE = "resolve"
    VERIFY = "verify"
    CLOSE = "close"


@dataclass(frozen=True)
class TransitionRule:
    roles: FrozenSet[Role]
    sources: FrozenSet[TicketStatus]
    target: TicketStatus
    # Move to target only when the ticket has not reached it yet
    advance_only: bool = False


RULES: Dict[Action, TransitionRule] = {
    Action.ASSIGN: TransitionRule(
        frozenset({Role.ADMIN, Role.MANAGER}), frozenset({P, IP, R, V}), IP, advance_only=True
    ),
    Action.ASSIGN_MANAGER: TransitionRule(
        frozenset({Role.ADMIN}), frozenset({P, IP, R, V}), IP, advance_only=True
    ),
    Action.ASSIGN_EMPLOYEE: TransitionRule(frozenset({Role.MANAGER}), frozenset({P, IP}), IP),
    Action.START: TransitionRule(frozenset({Role.EMPLOYEE}), frozenset({IP}), IP),
    Action.WORK_UPDATE: TransitionRule(frozenset({Role.EMPLOYEE}), frozenset({IP}), IP),
    Action.RESOLVE: TransitionRule(frozenset({Role.EMPLOYEE}), frozenset({IP}), R),
    Action.VERIFY: TransitionRule(frozenset({Role.MANAGER}), frozenset({R}), V),
    Action.CLOSE: TransitionRule(frozenset({Role.ADMIN}), frozenset({V}), C),
}


def require_role(action: Action, role: Role) -> None:
    rule = RULES[action]
    if role not in rule.roles:
        allowed = " or ".join(sorted(r.value for r in rule.roles))
        raise AuthorizationError(f"Only {allowed} may {action.value.replace('_', ' ')}")


def next_status(action: Action, role: Role, current: TicketStatus) -> TicketStatus:
    """
    Status a ticket ends up in when `role` performs `action` on it.

    Raises:
        AuthorizationError: The role may not perform the action
        PreconditionError: The ticket is not in a status the action accepts
    """
    require_role(action, role)
    rule = RULES[action]

    if current not in rule.sources:
        expected = ", ".join(s.value for s in sorted(rule.sources, key=lambda s: s.rank))
        raise PreconditionError(
            f"Cannot {action.value.replace('_', ' ')} a ticket in status '{current.value}' "
            f"(expected {expected})"
        )

    if rule.advance_only and current.rank >= rule.target.rank:
        return current

    target = rule.target
    if target != current and target not in TRANSITIONS.get((role, current), frozenset()):
        raise PreconditionError(f"Transition {current.value} -> {target.value} is not allowed")
    return target


def parse_status(value: Union[str, TicketStatus]) -> TicketStatus:
    """Map a raw status value onto the canonical enum.

    Raises:
        ValidationError: The value is not a canonical status
    """
    if isinstance(value, TicketStatus):
        return value
    status = TicketStatus.parse(value) if isinstance(value, str) else None
    if status is None:
        valid = ", ".join(s.value for s in TicketStatus)
        raise ValidationError(f"Invalid status '{value}'. Valid statuses: {valid}")
    return status


def check_status_update(role: Role, current: TicketStatus, requested: TicketStatus) -> None:
    """
    Validate a status write coming through the generic update operation.

    Raises:
        ValidationError: `requested` is outside the role's allowed set
        PreconditionError: A non-admin asked for a move the state graph forbids
    """
    allowed = UPDATE_TARGETS[role]
    if requested not in allowed:
        names = ", ".join(s.value for s in sorted(allowed, key=lambda s: s.rank))
        raise ValidationError(
            f"Role '{role.value}' cannot set status '{requested.value}' (allowed: {names})"
        )

    if role is Role.ADMIN:
        return

    if requested != current and requested not in TRANSITIONS.get((role, current), frozenset()):
        raise PreconditionError(
            f"Cannot move ticket from '{current.value}' to '{requested.value}'"
        )


def normalize_priority(value: Optional[str], default: str = "medium") -> TicketPriority:
    """
    Normalize a raw priority to low / medium / high.

    "critical" maps to high; an empty value falls back to `default`.

    Raises:
        ValidationError: Any other unknown value
    """
    if value is None or not value.strip():
        return TicketPriority(default)

    normalized = value.strip().lower()
    if normalized == "critical":
        return TicketPriority.HIGH
    try:
        return TicketPriority(normalized)
    except ValueError:
        raise ValidationError(f"Invalid priority '{value}'. Valid priorities: low, medium, high")


def phase_timestamps(
    ticket: Ticket, new_status: TicketStatus, now: datetime, *, starting: bool = False
) -> Dict[str, datetime]:
    """Phase timestamps to set for this transition. Existing values are kept."""
    stamps: Dict[str, datetime] = {}
    if starting and ticket.started_at is None:
        stamps["started_at"] = now
    if new_status is R and ticket.completed_at is None:
        stamps["completed_at"] = now
    if new_status is C and ticket.closed_at is None:
        stamps["closed_at"] = now
    return stamps


# ---------------------------------------------------------------------------
# Assignees
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedAssignee:
    """Assignee backed by a user record; may take part in ownership checks."""

    user_id: int
    name: str
    role: Role


@dataclass(frozen=True)
class UnresolvedAssignee:
    """Free-text assignee with no user record.

    Never written to the chain log and never matches an ownership check.
    """

    name: str


Assignee = Union[ResolvedAssignee, UnresolvedAssignee]


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


def is_employee_assignee(ticket: Ticket, identity: CallerIdentity) -> bool:
    """Whether the caller is the ticket's current employee-assignee.

    The employee hop wins; the single-step assignee counts only when no
    employee hop has been made.
    """
    if ticket.assigned_employee_id is not None:
        return ticket.assigned_employee_id == identity.id
    return ticket.assigned_to_id is not None and ticket.assigned_to_id == identity.id


def require_employee_assignee(ticket: Ticket, identity: CallerIdentity) -> None:
    if not is_employee_assignee(ticket, identity):
        raise AuthorizationError("Not your ticket")


def require_employee_editor(ticket: Ticket, identity: CallerIdentity) -> None:
    """Employees edit only tickets they are assigned to, or their own unassigned ones."""
    if is_employee_assignee(ticket, identity):
        return
    unassigned = ticket.assigned_employee_id is None and ticket.assigned_to_id is None
    if not (unassigned and ticket.created_by_id == identity.id):
        raise AuthorizationError("Not your ticket")


def verification_note_field(
    ticket: Ticket, identity: CallerIdentity, *, allow_department: bool
) -> str:
    """
    Which review-note column a verifying manager writes.

    The chain manager writes `manager_review_note`; a manager of the ticket's
    department who is not on the chain writes `department_review_note`.

    Raises:
        AuthorizationError: The caller is neither
    """
    if ticket.assigned_manager_id is not None and ticket.assigned_manager_id == identity.id:
        return "manager_review_note"

    if (
        allow_department
        and identity.department
        and ticket.department
        and identity.department.strip().lower() == ticket.department.strip().lower()
    ):
        return "department_review_note"

    raise AuthorizationError("Only the assigned manager or a manager of this department may verify")
