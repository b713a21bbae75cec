"""
Security utilities for the caller identity carried in JWT bearer tokens.

Token issuance belongs to the auth collaborator; this module only encodes
(for that collaborator and for tests) and decodes the identity claims
{sub, role, unit_id, department}.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from core.config import SecuritySettings
from db.enums import Role


class SecurityError(Exception):
    """Base exception for security-related errors."""

    pass


class TokenExpiredError(SecurityError):
    """Raised when a token has expired."""

    pass


class TokenInvalidError(SecurityError):
    """Raised when a token is invalid."""

    pass


class CallerIdentity(BaseModel):
    """Resolved caller identity supplied on every workflow operation."""

    model_config = ConfigDict(frozen=True)

    id: int
    role: Role
    unit_id: Optional[int] = None
    department: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def create_access_token(
    identity: CallerIdentity,
    security: SecuritySettings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token carrying `identity`.

    Args:
        identity: Caller identity to embed
        security: Security settings (secret, algorithm, issuer, audience)
        expires_delta: Custom lifetime (defaults to access_token_expire_minutes)

    Returns:
        JWT access token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=security.access_token_expire_minutes))

    payload = {
        "sub": str(identity.id),
        "role": identity.role.value,
        "unit_id": identity.unit_id,
        "department": identity.department,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": str(uuid4()),
        "iss": security.jwt_issuer,
        "aud": security.jwt_audience,
    }

    try:
        return jwt.encode(payload, security.secret_key, algorithm=security.algorithm)
    except Exception as e:
        raise SecurityError(f"Failed to create access token: {str(e)}")


def decode_token(token: str, security: SecuritySettings) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is invalid
    """
    try:
        return jwt.decode(
            token,
            security.secret_key,
            algorithms=[security.algorithm],
            audience=security.jwt_audience,
            issuer=security.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {str(e)}")


def identity_from_payload(payload: Dict[str, Any]) -> CallerIdentity:
    """Build a CallerIdentity from decoded claims.

    Raises:
        TokenInvalidError: If required claims are missing or malformed
    """
    if payload.get("type") != "access":
        raise TokenInvalidError("Invalid token type")

    try:
        return CallerIdentity(
            id=int(payload["sub"]),
            role=Role(payload["role"]),
            unit_id=payload.get("unit_id"),
            department=payload.get("department"),
        )
    except (KeyError, ValueError, TypeError, PydanticValidationError) as e:
        raise TokenInvalidError(f"Invalid identity claims: {str(e)}")
