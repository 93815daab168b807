"""Router tests for recurring invoice endpoints."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from src.database.session import get_db
from src.exceptions import AppException
from src.models.enums import (
    InvoiceType,
    RecipientType,
    RecurringFrequency,
    RecurringInvoiceStatus,
)
from src.modules.recurring_invoice.router import router
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.tenancy.cache import get_tenant_cache

PREFIX = "/recurring-invoices"


def _make_user() -> AuthenticatedUser:
    return AuthenticatedUser(
        id=uuid.uuid4(),
        email="billing@windpark.example",
        organization_id=uuid.uuid4(),
        role="admin",
        is_platform_admin=True,
    )


def _record(status: RecurringInvoiceStatus = RecurringInvoiceStatus.ACTIVE) -> MagicMock:
    now = datetime.now(UTC)
    record = MagicMock(
        id=uuid.uuid4(),
        organization_id=uuid.uuid4(),
        recipient_type=RecipientType.CUSTOM,
        recipient_id=None,
        recipient_name="Netzbetreiber Nord",
        recipient_address=None,
        invoice_type=InvoiceType.INVOICE,
        positions=[
            {"description": "Meter rent", "quantity": "2", "unit_price": "10.25", "tax_type": "STANDARD"},
            {"description": "Service", "quantity": "1", "unit_price": "100", "tax_type": "EXEMPT"},
        ],
        frequency=RecurringFrequency.QUARTERLY,
        day_of_month=1,
        start_date=date(2026, 1, 1),
        end_date=None,
        next_run_at=date(2026, 4, 1),
        last_run_at=date(2026, 1, 1),
        status=status,
        enabled=status == RecurringInvoiceStatus.ACTIVE,
        total_generated=1,
        last_invoice_id=None,
        notes=None,
        fund_id=None,
        park_id=None,
        created_by_id=None,
        created_at=now,
        updated_at=now,
    )
    record.name = "Meter rent"
    return record


@pytest.fixture
def cache():
    cache = MagicMock()
    cache.invalidate_tenant = AsyncMock(return_value=0)
    return cache


@pytest.fixture
def client(cache):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")

    @app.exception_handler(AppException)
    async def app_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message}},
        )

    async def override_get_db():
        yield AsyncMock()

    user = _make_user()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_tenant_cache] = lambda: cache
    return TestClient(app)


class TestRouteTable:
    def _methods(self, path: str) -> set[str]:
        methods: set[str] = set()
        for r in router.routes:
            if r.path == path:
                methods.update(r.methods)
        return methods

    def test_paths(self):
        assert self._methods(f"{PREFIX}/") == {"GET", "POST"}
        assert self._methods(f"{PREFIX}/upcoming") == {"GET"}
        assert self._methods(f"{PREFIX}/process") == {"POST"}
        assert self._methods(f"{PREFIX}/{{recurring_invoice_id}}") == {"GET", "PATCH", "DELETE"}

    def test_upcoming_declared_before_id_route(self):
        paths = [r.path for r in router.routes]
        assert paths.index(f"{PREFIX}/upcoming") < paths.index(f"{PREFIX}/{{recurring_invoice_id}}")


class TestEndpoints:
    def test_get_returns_total_net(self, client):
        record = _record()
        with patch("src.modules.recurring_invoice.router.RecurringInvoiceService") as svc_cls:
            svc_cls.return_value.get = AsyncMock(return_value=record)
            response = client.get(f"/api/v1{PREFIX}/{record.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["enabled"] is True
        assert body["total_net"] == "120.50"
        assert len(body["positions"]) == 2

    def test_create_rejects_end_before_start(self, client):
        response = client.post(
            f"/api/v1{PREFIX}/",
            json={
                "name": "Meter rent",
                "recipient_type": "custom",
                "recipient_name": "Netzbetreiber Nord",
                "positions": [{"description": "Meter rent", "quantity": 1, "unit_price": 10}],
                "frequency": "MONTHLY",
                "start_date": "2026-05-01",
                "end_date": "2026-04-01",
            },
        )
        assert response.status_code == 422

    def test_upcoming_goes_through_tenant_cache(self, client, cache):
        cached = [
            {
                "id": str(uuid.uuid4()),
                "name": "Meter rent",
                "recipient_name": "Netzbetreiber Nord",
                "frequency": "QUARTERLY",
                "next_run_at": "2026-04-01",
                "last_run_at": None,
                "total_generated": 1,
            }
        ]
        cache.get_or_set = AsyncMock(return_value=cached)

        response = client.get(f"/api/v1{PREFIX}/upcoming?limit=5")

        assert response.status_code == 200
        assert response.json()[0]["next_run_at"] == "2026-04-01"
        args = cache.get_or_set.call_args.args
        assert args[1] == "recurring-invoices:upcoming:5"

    def test_delete_disables_and_invalidates_cache(self, client, cache):
        with patch("src.modules.recurring_invoice.router.RecurringInvoiceService") as svc_cls:
            svc_cls.return_value.disable = AsyncMock(
                return_value=_record(RecurringInvoiceStatus.DISABLED)
            )
            response = client.delete(f"/api/v1{PREFIX}/{uuid.uuid4()}")

        assert response.status_code == 204
        svc_cls.return_value.disable.assert_awaited_once()
        cache.invalidate_tenant.assert_awaited_once()
