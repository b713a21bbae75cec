"""
Enums for database models.

These replace lookup tables for values that form a small closed set, never
change at runtime, and carry workflow meaning in code:
- Role: the three-tier actor hierarchy
- TicketStatus: canonical five-state ticket lifecycle
- TicketPriority: normalized priority levels
- AssignmentRole: label of an assignment-chain hop
"""
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Actor role. Fixed at registration."""
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class TicketStatus(str, Enum):
    """
    Canonical ticket lifecycle.

    Order matters: members are declared in lifecycle order and
    `rank` is used to tell whether a ticket is already past a phase.
    """
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    VERIFIED = "Verified"
    CLOSED = "Closed"

    @property
    def rank(self) -> int:
        return list(TicketStatus).index(self)

    @classmethod
    def parse(cls, value: str) -> Optional["TicketStatus"]:
        """Return the member whose value matches exactly, or None."""
        for member in cls:
            if member.value == value:
                return member
        return None


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AssignmentRole(str, Enum):
    """Label stored on each assignment-chain entry."""
    MANAGER = "manager"
    EMPLOYEE = "employee"
