"""Invoice API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import InvoiceStatus, InvoiceType
from src.modules.invoice.schemas import (
    InvoiceCancelRequest,
    InvoiceListResponse,
    InvoiceMarkPaidRequest,
    InvoiceResponse,
)
from src.modules.invoice.service import InvoiceService
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.cache import TenantCache, get_tenant_cache
from src.modules.tenancy.constants import (
    PERMISSION_INVOICES_READ,
    PERMISSION_INVOICES_UPDATE,
)
from src.modules.tenancy.dependencies import require_permission

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/", response_model=InvoiceListResponse)
async def list_invoices(
    status: InvoiceStatus | None = Query(None),
    invoice_type: InvoiceType | None = Query(None),
    settlement_period_id: uuid.UUID | None = Query(None),
    recurring_invoice_id: uuid.UUID | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_READ)),
    db: AsyncSession = Depends(get_db),
):
    """List invoices and credit notes of the calling organization."""
    svc = InvoiceService(db)
    items, total = await svc.list_invoices(
        organization_id=user.organization_id,
        status=status,
        invoice_type=invoice_type,
        settlement_period_id=settlement_period_id,
        recurring_invoice_id=recurring_invoice_id,
        limit=limit,
        offset=offset,
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = InvoiceService(db)
    invoice = await svc.get_invoice(invoice_id, user.organization_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
async def send_invoice(
    invoice_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_UPDATE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    """Mark a draft invoice as sent (delivery itself happens elsewhere)."""
    svc = InvoiceService(db)
    invoice = await svc.send(invoice_id, user.organization_id)
    await cache.invalidate_tenant(user.organization_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_paid(
    invoice_id: uuid.UUID,
    body: InvoiceMarkPaidRequest,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_UPDATE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    svc = InvoiceService(db)
    invoice = await svc.mark_paid(
        invoice_id,
        user.organization_id,
        paid_at=body.paid_at,
        notes=body.notes,
    )
    await cache.invalidate_tenant(user.organization_id)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    body: InvoiceCancelRequest,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_UPDATE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    svc = InvoiceService(db)
    invoice = await svc.cancel(invoice_id, user.organization_id, reason=body.reason)
    await cache.invalidate_tenant(user.organization_id)
    return InvoiceResponse.model_validate(invoice)
