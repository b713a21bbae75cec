"""
Repository layer for database operations.

This package contains all data access logic isolated from business logic.
Each repository handles CRUD operations for a specific entity.
"""

from repositories.base_repository import BaseRepository
from repositories.ticket_assignment_repository import TicketAssignmentRepository
from repositories.ticket_repository import TicketRepository
from repositories.unit_repository import UnitRepository
from repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "TicketAssignmentRepository",
    "TicketRepository",
    "UnitRepository",
    "UserRepository",
]
