"""Recurring invoice API router."""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.database.session import get_db
from src.models.enums import RecurringFrequency, RecurringInvoiceStatus
from src.modules.recurring_invoice.constants import UPCOMING_CACHE_KEY, UPCOMING_DEFAULT_LIMIT
from src.modules.recurring_invoice.schemas import (
    ProcessResultResponse,
    RecurringInvoiceCreate,
    RecurringInvoiceListResponse,
    RecurringInvoiceResponse,
    RecurringInvoiceUpdate,
    UpcomingRecurringInvoice,
)
from src.modules.recurring_invoice.service import RecurringInvoiceService
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.cache import TenantCache, get_tenant_cache
from src.modules.tenancy.constants import (
    PERMISSION_RECURRING_MANAGE,
    PERMISSION_RECURRING_READ,
)
from src.modules.tenancy.dependencies import require_permission
from src.rate_limit import limiter

router = APIRouter(prefix="/recurring-invoices", tags=["recurring-invoices"])


@router.get("/", response_model=RecurringInvoiceListResponse)
async def list_recurring_invoices(
    status: RecurringInvoiceStatus | None = Query(None),
    frequency: RecurringFrequency | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = RecurringInvoiceService(db)
    items, total = await svc.list_recurring(
        organization_id=user.organization_id,
        status=status,
        frequency=frequency,
        limit=limit,
        offset=offset,
    )
    return RecurringInvoiceListResponse(
        items=[RecurringInvoiceResponse.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=RecurringInvoiceResponse, status_code=201)
async def create_recurring_invoice(
    body: RecurringInvoiceCreate,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_MANAGE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    svc = RecurringInvoiceService(db)
    record = await svc.create(user.organization_id, body, created_by_id=user.id)
    await cache.invalidate_tenant(user.organization_id)
    return RecurringInvoiceResponse.model_validate(record)


@router.get("/upcoming", response_model=list[UpcomingRecurringInvoice])
async def upcoming_recurring_invoices(
    limit: int = Query(UPCOMING_DEFAULT_LIMIT, ge=1, le=50),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_READ)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    """Next scheduled runs of the active templates, served from the tenant cache."""

    async def _load() -> list[dict]:
        svc = RecurringInvoiceService(db)
        records = await svc.upcoming(user.organization_id, limit=limit)
        return [
            UpcomingRecurringInvoice.model_validate(r).model_dump(mode="json") for r in records
        ]

    rows = await cache.get_or_set(
        user.organization_id,
        UPCOMING_CACHE_KEY.format(limit=limit),
        _load,
        ttl=settings.upcoming_recurring_cache_ttl,
    )
    return [UpcomingRecurringInvoice.model_validate(row) for row in rows]


@router.post("/process", response_model=ProcessResultResponse)
@limiter.limit("5/minute")
async def process_recurring_invoices(
    request: Request,
    run_date: date | None = Query(None),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_MANAGE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    """Generate the due invoices of the calling organization now.

    The daily Celery beat task does the same for every organization.
    """
    svc = RecurringInvoiceService(db)
    result = await svc.process_due(today=run_date, organization_id=user.organization_id)
    if result.succeeded:
        await cache.invalidate_tenant(user.organization_id)
    return ProcessResultResponse.model_validate(result)


@router.get("/{recurring_invoice_id}", response_model=RecurringInvoiceResponse)
async def get_recurring_invoice(
    recurring_invoice_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = RecurringInvoiceService(db)
    record = await svc.get(recurring_invoice_id, user.organization_id)
    return RecurringInvoiceResponse.model_validate(record)


@router.patch("/{recurring_invoice_id}", response_model=RecurringInvoiceResponse)
async def update_recurring_invoice(
    recurring_invoice_id: uuid.UUID,
    body: RecurringInvoiceUpdate,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_MANAGE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    svc = RecurringInvoiceService(db)
    record = await svc.update(recurring_invoice_id, user.organization_id, body)
    await cache.invalidate_tenant(user.organization_id)
    return RecurringInvoiceResponse.model_validate(record)


@router.delete("/{recurring_invoice_id}", status_code=204)
async def delete_recurring_invoice(
    recurring_invoice_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_RECURRING_MANAGE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    """Disable the template. It is kept for the history of generated invoices."""
    svc = RecurringInvoiceService(db)
    await svc.disable(recurring_invoice_id, user.organization_id)
    await cache.invalidate_tenant(user.organization_id)
