"""
Ticket schemas for API validation and serialization.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from core.schema_base import HTTPSchemaModel
from db.enums import AssignmentRole, TicketPriority, TicketStatus


class TicketCreate(HTTPSchemaModel):
    """Schema for creating a ticket.

    `unit_id` is required for admins and ignored for employees, whose own
    unit is used. `priority` accepts any case and "critical".
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    priority: Optional[str] = Field(None, max_length=20)
    department: str = Field(..., min_length=1, max_length=255)
    floor: Optional[str] = Field(None, max_length=10)
    room: Optional[str] = Field(None, max_length=20)
    bed: Optional[str] = Field(None, max_length=20)
    unit_id: Optional[int] = None
    equipment_id: Optional[int] = None


class TicketUpdate(HTTPSchemaModel):
    """Schema for the generic update.

    `unit_id` and `created_by_id` are accepted only to be rejected by the
    workflow with a clear message.
    """
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    comment: Optional[str] = None
    unit_id: Optional[int] = None
    created_by_id: Optional[int] = None


class AssignRequest(HTTPSchemaModel):
    """Single-step assignment: a user id, a free-text name, or both."""
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = Field(None, max_length=255)
    required_equipment_ids: Optional[List[int]] = None
    note: Optional[str] = None


class AssignManagerRequest(HTTPSchemaModel):
    manager_id: int
    required_equipment_ids: Optional[List[int]] = None
    note: Optional[str] = None


class AssignEmployeeRequest(HTTPSchemaModel):
    employee_id: int
    required_equipment_ids: Optional[List[int]] = None
    note: Optional[str] = None


class WorkUpdateRequest(HTTPSchemaModel):
    work_note: Optional[str] = None
    equipments_used: Optional[List[int]] = None


class ResolveRequest(WorkUpdateRequest):
    """Final work note and equipment list recorded on resolution."""
    pass


class VerifyRequest(HTTPSchemaModel):
    note: Optional[str] = None


class TicketRead(HTTPSchemaModel):
    """Full ticket entity."""
    id: int
    title: str
    description: str
    category: str
    priority: TicketPriority
    department: str
    floor: Optional[str] = None
    room: Optional[str] = None
    bed: Optional[str] = None
    unit_id: int
    equipment_id: Optional[int] = None
    status: TicketStatus
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    assigned_manager_id: Optional[int] = None
    assigned_employee_id: Optional[int] = None
    created_by_id: int
    work_note: Optional[str] = None
    equipments_used: Optional[List[int]] = None
    manager_review_note: Optional[str] = None
    department_review_note: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class TicketAssignmentRead(HTTPSchemaModel):
    """Assignment-chain entry."""
    id: int
    ticket_id: int
    assigned_to_id: int
    assigned_by_id: int
    role: AssignmentRole
    equipment_ids: Optional[List[int]] = None
    note: Optional[str] = None
    created_at: datetime
