"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header, extracts user claims,
and sets request.state.user for downstream dependencies.
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """Represents the authenticated user extracted from a JWT token."""

    id: uuid.UUID
    email: str
    organization_id: uuid.UUID
    role: str
    is_platform_admin: bool = False


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


def user_from_claims(payload: dict) -> AuthenticatedUser:
    try:
        return AuthenticatedUser(
            id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            organization_id=uuid.UUID(payload["org_id"]),
            role=payload.get("role", "viewer"),
            is_platform_admin=bool(payload.get("is_platform_admin", False)),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that extracts and validates the current user from JWT."""
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    user = user_from_claims(decode_token(credentials.credentials))
    request.state.user = user
    return user
