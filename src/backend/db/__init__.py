"""
Database models using SQLModel.

Re-exports the table models and enums so callers can `from db import Ticket`.
"""
from .enums import AssignmentRole, Role, TicketPriority, TicketStatus
from .models import (
    TableModel,
    Ticket,
    TicketAssignment,
    Unit,
    User,
    utc_now,
)

__all__ = [
    "AssignmentRole",
    "Role",
    "TicketPriority",
    "TicketStatus",
    "TableModel",
    "Ticket",
    "TicketAssignment",
    "Unit",
    "User",
    "utc_now",
]
