"""FastAPI dependency functions for tenant context injection."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.exceptions import ForbiddenException
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.tenancy.permissions import PermissionService
from src.modules.tenancy.schemas import TenantContext


def get_tenant_context(request: Request) -> TenantContext | None:
    """Extract the TenantContext from request state, or return None if not set."""
    return getattr(request.state, "tenant_context", None)


async def ensure_permission(db: AsyncSession, user: AuthenticatedUser, permission: str) -> None:
    """Raise ForbiddenException unless ``user`` holds ``permission`` in their active organization.

    For checks that depend on the request body and so cannot be declared as a
    route dependency.
    """
    # Platform admins bypass permission checks
    if user.is_platform_admin:
        return
    svc = PermissionService(db)
    has = await svc.check_permission(user.id, user.organization_id, permission)
    if not has:
        raise ForbiddenException(f"Permission denied: {permission}")


def require_permission(permission: str):
    """Factory that returns a FastAPI dependency checking a specific permission.

    Permission is checked against the user's role in their JWT-active
    organization (``user.organization_id``).
    """

    async def _check(
        user: AuthenticatedUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> AuthenticatedUser:
        await ensure_permission(db, user, permission)
        return user

    return _check
