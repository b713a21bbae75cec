"""
Workflow error taxonomy.

Every error raised by the ticket workflow carries a caller-facing message and
the HTTP status it maps to. Handlers in core.exception_handlers render them as
{"message": ...}.
"""

from fastapi import status


class WorkflowError(Exception):
    """Base class for errors surfaced to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Missing or invalid field, or a status outside the caller's allowed set."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(WorkflowError):
    """Caller's role or ownership does not permit the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(WorkflowError):
    """Referenced ticket, user or unit does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class PreconditionError(WorkflowError):
    """The ticket is not in the status the operation requires."""

    status_code = status.HTTP_400_BAD_REQUEST


class InfrastructureError(WorkflowError):
    """Record store failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
