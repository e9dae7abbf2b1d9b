"""
Admin Authentication

FastAPI dependency that authenticates academy administrators from a JWT
Bearer token. Issuing tokens (login, cookies) happens elsewhere; this module
only validates them.

SECURITY NOTE:
- Fixed test tokens are accepted ONLY when PYTHON_ENV=development
- They are never accepted when PYTHON_ENV is production or staging
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from academy.core.config import settings
from academy.core.security import decode_token

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for academy administrators",
)


@dataclass
class AdminUser:
    """
    An authenticated academy administrator, built from JWT claims.

    Attributes:
        id: Admin's unique identifier
        email: Admin's email, recorded as approved_by / rejected_by
        role: Must be 'admin'
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    def __str__(self) -> str:
        return f"AdminUser(id={self.id}, email={self.email}, role={self.role})"


def _dev_tokens_allowed() -> bool:
    """True only in development, and never if the raw env says production or staging."""
    env_var = os.getenv("PYTHON_ENV", "").lower()
    allowed = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )
    if allowed:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )
    return allowed


_DEVELOPMENT_MODE = _dev_tokens_allowed()

_DEV_ADMIN = AdminUser(
    id=UUID("00000000-0000-0000-0000-000000000001"),
    email="admin@academy.dev",
    role=ADMIN_ROLE,
    name="Development Admin",
)


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _admin_from_token(token: str) -> AdminUser:
    """
    Build an AdminUser from a Bearer token.

    Raises:
        HTTPException 401: If the token is invalid, expired, not an access
            token, or missing claims
    """
    if _DEVELOPMENT_MODE and token in ("dev-token", "test-token"):
        logger.debug("Development mode: Using test token")
        return _DEV_ADMIN

    payload = decode_token(token)
    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        return AdminUser(
            id=UUID(payload["sub"]),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            name=payload.get("name"),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_admin_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AdminUser:
    """
    FastAPI dependency that returns the authenticated administrator.

    Usage:
        @router.post("/approve")
        async def approve(admin: AdminUser = Depends(get_current_admin_user)):
            ...

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
        HTTPException 403: If the user is not an admin
    """
    user = _admin_from_token(credentials.credentials)

    if user.role != ADMIN_ROLE:
        logger.warning(
            f"Access denied: User {user.id} ({user.email}) has role '{user.role}', "
            f"but '{ADMIN_ROLE}' is required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ADMIN_ACCESS_REQUIRED",
                "message": "Admin access is required for this endpoint.",
            },
        )

    logger.debug(f"Authenticated admin: {user.id} ({user.email})")
    return user


__all__ = ["ADMIN_ROLE", "AdminUser", "get_current_admin_user"]
