"""Pytest fixtures for wind-park billing application tests."""

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from src.app import app
from src.config import settings
from src.database.session import get_db
from src.modules.tenancy.cache import get_tenant_cache


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build a signed bearer token with the claims the API expects."""

    def _make(
        organization_id: uuid.UUID | None = None,
        is_platform_admin: bool = False,
        role: str = "accountant",
        expires_in: timedelta = timedelta(minutes=5),
    ) -> str:
        claims = {
            "sub": str(uuid.uuid4()),
            "email": "clerk@windpark.example",
            "org_id": str(organization_id or uuid.uuid4()),
            "role": role,
            "is_platform_admin": is_platform_admin,
            "exp": datetime.now(UTC) + expires_in,
        }
        return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def client():
    """TestClient on the real app with the database and Redis cache mocked out."""

    async def override_get_db() -> AsyncGenerator[AsyncMock, None]:
        yield AsyncMock()

    cache = MagicMock()
    cache.invalidate_tenant = AsyncMock(return_value=0)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tenant_cache] = lambda: cache

    yield TestClient(app)

    app.dependency_overrides.clear()
