from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config import settings
from src.modules.tenancy.dependencies import get_tenant_context


def tenant_or_address(request: Request) -> str:
    """Rate-limit key: the caller's organization when authenticated, else the client IP."""
    tenant = get_tenant_context(request)
    if tenant is not None:
        return f"org:{tenant.organization_id}"
    return get_remote_address(request)


# Shared limiter. Registered on app.state in create_app.
limiter = Limiter(key_func=tenant_or_address, default_limits=[settings.rate_limit_default])
