"""
Database models for the equipment service desk.

Tables:
- units: organizational divisions owning tickets and staff
- users: actors (admin / manager / employee)
- tickets: service tickets and their workflow state
- ticket_assignments: append-only assignment-chain log

Enums are stored by value (e.g. "In Progress") in non-native VARCHAR columns so
the same schema works on PostgreSQL and SQLite.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlmodel import Field, SQLModel

from db.enums import AssignmentRole, Role, TicketPriority, TicketStatus


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-naive) for database storage.

    All timestamps are stored in UTC without timezone info; the API layer
    serializes them with a 'Z' suffix.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def _enum_column(enum_cls, name: str, nullable: bool = False, index: bool = False) -> Column:
    return Column(
        SAEnum(
            enum_cls,
            name=name,
            values_callable=_enum_values,
            native_enum=False,
            length=20,
            validate_strings=True,
        ),
        nullable=nullable,
        index=index,
    )


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


class Unit(TableModel, table=True):
    """Organizational unit. Reference data owned by the organization."""

    __tablename__ = "units"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(100), nullable=False))
    code: str = Field(sa_column=Column(String(20), nullable=False, unique=True))


class User(TableModel, table=True):
    """Actor. Role and unit are fixed once registered."""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(100), nullable=False, index=True))
    email: str = Field(sa_column=Column(String(120), nullable=False, unique=True))
    password_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Opaque credential managed by the auth collaborator",
    )
    role: Role = Field(
        default=Role.EMPLOYEE,
        sa_column=_enum_column(Role, "role_enum", index=True),
    )
    unit_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("units.id"), nullable=True, index=True),
    )
    department: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    phone_number: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )


class Ticket(TableModel, table=True):
    """Service ticket.

    `unit_id`, `created_by_id` and `created_at` are written once at creation.
    `status` only moves through the workflow engine.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_unit_status", "unit_id", "status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # Content
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    category: str = Field(sa_column=Column(String(100), nullable=False))
    priority: TicketPriority = Field(
        default=TicketPriority.MEDIUM,
        sa_column=_enum_column(TicketPriority, "ticket_priority_enum"),
    )
    department: str = Field(sa_column=Column(String(255), nullable=False))
    floor: Optional[str] = Field(default=None, sa_column=Column(String(10), nullable=True))
    room: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    bed: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))

    # Routing
    unit_id: int = Field(sa_column=Column(Integer, ForeignKey("units.id"), nullable=False, index=True))
    equipment_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))

    # Workflow state
    status: TicketStatus = Field(
        default=TicketStatus.PENDING,
        sa_column=_enum_column(TicketStatus, "ticket_status_enum", index=True),
    )

    # Assignment
    assigned_to_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=True, index=True),
    )
    assigned_to_name: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    assigned_manager_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=True, index=True),
    )
    assigned_employee_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=True, index=True),
    )

    # Provenance
    created_by_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=False, index=True),
    )

    # Narrative
    work_note: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    equipments_used: Optional[List[int]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    manager_review_note: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    department_review_note: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    comment: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    # Timestamps
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    started_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    closed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))


class TicketAssignment(TableModel, table=True):
    """Assignment-chain entry. Insert-only."""

    __tablename__ = "ticket_assignments"

    id: Optional[int] = Field(default=None, primary_key=True)
    ticket_id: int = Field(
        sa_column=Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True),
    )
    assigned_to_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    assigned_by_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    role: AssignmentRole = Field(sa_column=_enum_column(AssignmentRole, "assignment_role_enum"))
    equipment_ids: Optional[List[int]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    note: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
