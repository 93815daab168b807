"""FastAPI middleware for extracting the tenant context from the bearer token."""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.exceptions import UnauthorizedException
from src.modules.tenancy.auth import decode_token, user_from_claims
from src.modules.tenancy.constants import EXCLUDED_ROUTES
from src.modules.tenancy.schemas import TenantContext

logger = logging.getLogger(__name__)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Stores a TenantContext in request.state.tenant_context for authenticated requests.

    Invalid or missing tokens are not rejected here; the ``get_current_user``
    dependency raises 401 for routes that need authentication.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path

        if any(path.startswith(route) for route in EXCLUDED_ROUTES):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return await call_next(request)

        try:
            user = user_from_claims(decode_token(token))
        except UnauthorizedException:
            return await call_next(request)

        request.state.user = user
        request.state.tenant_context = TenantContext(
            organization_id=user.organization_id,
            user_id=user.id,
            is_platform_admin=user.is_platform_admin,
        )
        return await call_next(request)
