"""
API request and response schemas.
"""
from .ticket import (
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
from .unit import UnitRead
from .user import AssignableUserRead

__all__ = [
    "AssignEmployeeRequest",
    "AssignManagerRequest",
    "AssignRequest",
    "AssignableUserRead",
    "ResolveRequest",
    "TicketAssignmentRead",
    "TicketCreate",
    "TicketRead",
    "TicketUpdate",
    "UnitRead",
    "VerifyRequest",
    "WorkUpdateRequest",
]
