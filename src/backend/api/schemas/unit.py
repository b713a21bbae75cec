"""
Unit schemas.
"""
from core.schema_base import HTTPSchemaModel


class UnitRead(HTTPSchemaModel):
    id: int
    name: str
    code: str
