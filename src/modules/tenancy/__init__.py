"""Tenancy module: JWT auth, tenant context, role permissions and tenant-scoped caching."""

from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.tenancy.cache import TenantCache, get_tenant_cache
from src.modules.tenancy.dependencies import (
    ensure_permission,
    get_tenant_context,
    require_permission,
)
from src.modules.tenancy.middleware import TenantContextMiddleware
from src.modules.tenancy.permissions import PermissionService
from src.modules.tenancy.schemas import TenantContext

__all__ = [
    # Schemas
    "TenantContext",
    # Auth
    "AuthenticatedUser",
    "get_current_user",
    # Middleware
    "TenantContextMiddleware",
    # Dependencies
    "get_tenant_context",
    "require_permission",
    "ensure_permission",
    # Cache
    "TenantCache",
    "get_tenant_cache",
    # Permissions
    "PermissionService",
]
