"""
Authentication and service dependencies for FastAPI.

The caller identity is taken from the bearer token as issued by the auth
collaborator; it is not re-derived from the database here.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings
from core.security import (
    CallerIdentity,
    SecurityError,
    decode_token,
    identity_from_payload,
)

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


class AuthenticationError(HTTPException):
    """Custom authentication error."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    app_settings: Settings = Depends(get_app_settings),
) -> CallerIdentity:
    """Resolve the caller identity from the JWT bearer token.

    Raises:
        AuthenticationError: If the token is missing, expired or malformed
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    try:
        payload = decode_token(credentials.credentials, app_settings.security)
        return identity_from_payload(payload)
    except SecurityError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationError(str(e))


def get_ticket_service(request: Request):
    """Workflow engine created during application startup."""
    return request.app.state.ticket_service
