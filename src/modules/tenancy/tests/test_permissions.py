"""Unit tests for PermissionService and the require_permission dependency."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.exceptions import ForbiddenException
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.dependencies import require_permission
from src.modules.tenancy.permissions import PermissionService


def _make_role(permissions: list[str], name: str = "accountant"):
    role = MagicMock()
    role.id = uuid.uuid4()
    role.name = name
    role.permissions = permissions
    role.is_system = True
    return role


def _mock_db_returning_membership(role):
    """AsyncSession whose execute().unique().scalar_one_or_none() yields a membership."""
    db = AsyncMock()
    result = MagicMock()
    if role is None:
        result.unique.return_value.scalar_one_or_none.return_value = None
    else:
        membership = MagicMock()
        membership.role = role
        result.unique.return_value.scalar_one_or_none.return_value = membership
    db.execute.return_value = result
    return db


def _make_user(is_platform_admin: bool = False) -> AuthenticatedUser:
    return AuthenticatedUser(
        id=uuid.uuid4(),
        email="clerk@windpark.example",
        organization_id=uuid.uuid4(),
        role="accountant",
        is_platform_admin=is_platform_admin,
    )


@pytest.mark.asyncio
async def test_check_permission_returns_true_for_wildcard():
    db = _mock_db_returning_membership(_make_role(["*"]))

    svc = PermissionService(db)
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "settlements:review") is True


@pytest.mark.asyncio
async def test_check_permission_returns_true_for_matching_permission():
    db = _mock_db_returning_membership(_make_role(["settlements:read", "invoices:read"]))

    svc = PermissionService(db)
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "invoices:read") is True


@pytest.mark.asyncio
async def test_check_permission_returns_true_for_resource_wildcard():
    db = _mock_db_returning_membership(_make_role(["settlements:*"]))

    svc = PermissionService(db)
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "settlements:delete") is True
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "invoices:read") is False


@pytest.mark.asyncio
async def test_check_permission_returns_false_for_missing_permission():
    db = _mock_db_returning_membership(_make_role(["settlements:read"]))

    svc = PermissionService(db)
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "settlements:review") is False


@pytest.mark.asyncio
async def test_check_permission_returns_false_for_no_membership():
    db = _mock_db_returning_membership(None)

    svc = PermissionService(db)
    assert await svc.check_permission(uuid.uuid4(), uuid.uuid4(), "settlements:read") is False


@pytest.mark.asyncio
async def test_get_user_permissions_returns_permission_list():
    db = _mock_db_returning_membership(_make_role(["settlements:read", "invoices:read"]))

    svc = PermissionService(db)
    permissions = await svc.get_user_permissions(uuid.uuid4(), uuid.uuid4())
    assert permissions == ["settlements:read", "invoices:read"]


@pytest.mark.asyncio
async def test_get_user_permissions_returns_empty_for_no_membership():
    db = _mock_db_returning_membership(None)

    svc = PermissionService(db)
    assert await svc.get_user_permissions(uuid.uuid4(), uuid.uuid4()) == []


class TestRequirePermission:
    @pytest.mark.asyncio
    async def test_platform_admin_bypasses_lookup(self):
        db = AsyncMock()
        check = require_permission("settlements:review")

        user = _make_user(is_platform_admin=True)
        assert await check(user=user, db=db) is user
        db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_permission_raises_forbidden(self):
        db = _mock_db_returning_membership(_make_role(["settlements:read"]))
        check = require_permission("settlements:review")

        with pytest.raises(ForbiddenException, match="settlements:review"):
            await check(user=_make_user(), db=db)

    @pytest.mark.asyncio
    async def test_granted_permission_returns_user(self):
        db = _mock_db_returning_membership(_make_role(["settlements:review"]))
        check = require_permission("settlements:review")

        user = _make_user()
        assert await check(user=user, db=db) is user
