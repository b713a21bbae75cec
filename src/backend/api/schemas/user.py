"""
User schemas.
"""
from typing import Optional

from core.schema_base import HTTPSchemaModel
from db.enums import Role


class AssignableUserRead(HTTPSchemaModel):
    """User entry offered as an assignment target."""
    id: int
    name: str
    email: str
    role: Role
    unit_id: Optional[int] = None
    department: Optional[str] = None
