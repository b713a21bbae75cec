"""
Base schema model for API requests and responses.

Field names are snake_case in Python and camelCase on the wire
(`assigned_manager_id` <-> `assignedManagerId`). Datetimes are stored as
naive UTC and serialized with a 'Z' suffix.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer


def to_camel(string: str) -> str:
    """
    Convert snake_case to camelCase.

    Example:
        >>> to_camel("assigned_to_id")
        'assignedToId'
    """
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


def serialize_datetime(dt: datetime | None) -> str | None:
    """
    Serialize datetime to ISO 8601 with a 'Z' suffix.

    Timezone-aware values are converted to UTC first.
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)

    return dt.isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP API schemas.

    Accepts both snake_case and camelCase input, reads ORM objects
    (from_attributes) and emits camelCase.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    def serialize_any_datetime(self, value: Any, handler: Any) -> Any:
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)
