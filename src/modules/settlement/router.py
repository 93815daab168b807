"""Settlement period API router."""

from __future__ import annotations

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import SettlementPeriodStatus, SettlementPeriodType
from src.modules.settlement.calculator import FinalCalculation
from src.modules.settlement.constants import REVIEW_ACTIONS
from src.modules.settlement.schemas import (
    AdvanceCalculationResponse,
    AdvanceLeaseResponse,
    AdvanceTotalsResponse,
    FinalCalculationResponse,
    FinalLeaseResponse,
    FinalTotalsResponse,
    SettlementApproveRequest,
    SettlementBulkCreateResponse,
    SettlementCalculateRequest,
    SettlementCalculateResponse,
    SettlementInvoicesResponse,
    SettlementPeriodBulkCreate,
    SettlementPeriodCreate,
    SettlementPeriodListResponse,
    SettlementPeriodResponse,
    SettlementPeriodUpdate,
    SettlementTransitionResponse,
)
from src.modules.settlement.service import CalculationOutcome, SettlementService
from src.modules.settlement.workflow import action_for_status_update
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.cache import TenantCache, get_tenant_cache
from src.modules.tenancy.constants import (
    PERMISSION_INVOICES_CREATE,
    PERMISSION_SETTLEMENTS_CREATE,
    PERMISSION_SETTLEMENTS_DELETE,
    PERMISSION_SETTLEMENTS_READ,
    PERMISSION_SETTLEMENTS_REVIEW,
    PERMISSION_SETTLEMENTS_UPDATE,
)
from src.modules.tenancy.dependencies import ensure_permission, require_permission

router = APIRouter(prefix="/settlement-periods", tags=["settlement-periods"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _calculation_response(outcome: CalculationOutcome) -> SettlementCalculateResponse:
    period = outcome.period
    calc = outcome.calculation
    if isinstance(calc, FinalCalculation):
        calculation = FinalCalculationResponse(
            park_id=outcome.park.id,
            park_name=outcome.park.name,
            year=period.year,
            calculated_at=outcome.calculated_at,
            leases=[FinalLeaseResponse.model_validate(lease) for lease in calc.leases],
            totals=FinalTotalsResponse.model_validate(calc.totals),
        )
    else:
        calculation = AdvanceCalculationResponse(
            park_id=outcome.park.id,
            park_name=outcome.park.name,
            year=period.year,
            month=period.month,
            advance_interval=calc.advance_interval,
            calculated_at=outcome.calculated_at,
            leases=[AdvanceLeaseResponse.model_validate(lease) for lease in calc.leases],
            totals=AdvanceTotalsResponse.model_validate(calc.totals),
        )
    return SettlementCalculateResponse(
        period=SettlementPeriodResponse.model_validate(period),
        calculation=calculation,
        saved=outcome.saved,
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=SettlementPeriodListResponse)
async def list_settlement_periods(
    park_id: uuid.UUID | None = Query(None),
    year: int | None = Query(None, ge=2000, le=2100),
    status: SettlementPeriodStatus | None = Query(None),
    period_type: SettlementPeriodType | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = SettlementService(db)
    items, total = await svc.list_periods(
        organization_id=user.organization_id,
        park_id=park_id,
        year=year,
        status=status,
        period_type=period_type,
        limit=limit,
        offset=offset,
    )
    return SettlementPeriodListResponse(
        items=[SettlementPeriodResponse.model_validate(p) for p in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/", response_model=SettlementPeriodResponse, status_code=201)
async def create_settlement_period(
    body: SettlementPeriodCreate,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    svc = SettlementService(db)
    period = await svc.create_period(user.organization_id, body, created_by_id=user.id)
    return SettlementPeriodResponse.model_validate(period)


@router.post("/bulk-create", response_model=SettlementBulkCreateResponse, status_code=201)
async def bulk_create_settlement_periods(
    body: SettlementPeriodBulkCreate,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    """Create all advance periods of a year (and the final period) for a park."""
    svc = SettlementService(db)
    created, skipped = await svc.bulk_create(user.organization_id, body, created_by_id=user.id)
    return SettlementBulkCreateResponse(
        created=[SettlementPeriodResponse.model_validate(p) for p in created],
        skipped=skipped,
    )


@router.get("/{period_id}", response_model=SettlementPeriodResponse)
async def get_settlement_period(
    period_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = SettlementService(db)
    period = await svc.get_period(period_id, user.organization_id)
    return SettlementPeriodResponse.model_validate(period)


@router.patch("/{period_id}", response_model=SettlementPeriodResponse)
async def update_settlement_period(
    period_id: uuid.UUID,
    body: SettlementPeriodUpdate,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    """Edit notes/revenue, or move the period along the workflow via ``status``.

    Setting APPROVED or rejecting back to IN_PROGRESS additionally requires the
    reviewer permission.
    """
    if body.status is not None and action_for_status_update(body.status) in REVIEW_ACTIONS:
        await ensure_permission(db, user, PERMISSION_SETTLEMENTS_REVIEW)

    svc = SettlementService(db)
    period = await svc.update_period(period_id, user.organization_id, body, user_id=user.id)
    return SettlementPeriodResponse.model_validate(period)


@router.delete("/{period_id}", status_code=204)
async def delete_settlement_period(
    period_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    svc = SettlementService(db)
    await svc.delete_period(period_id, user.organization_id)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


@router.post("/{period_id}/calculate", response_model=SettlementCalculateResponse)
async def calculate_settlement_period(
    period_id: uuid.UUID,
    body: SettlementCalculateRequest | None = None,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    body = body or SettlementCalculateRequest()
    svc = SettlementService(db)
    outcome = await svc.calculate(
        period_id,
        user.organization_id,
        user_id=user.id,
        total_revenue=body.total_revenue,
        save_result=body.save_result,
    )
    return _calculation_response(outcome)


@router.get("/{period_id}/calculate", response_model=SettlementCalculateResponse)
async def preview_settlement_calculation(
    period_id: uuid.UUID,
    total_revenue: Decimal | None = Query(None, ge=0),
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Run the calculation without saving anything."""
    svc = SettlementService(db)
    outcome = await svc.calculate(
        period_id,
        user.organization_id,
        user_id=user.id,
        total_revenue=total_revenue,
        save_result=False,
    )
    return _calculation_response(outcome)


@router.post("/{period_id}/approve", response_model=SettlementPeriodResponse)
async def review_settlement_period(
    period_id: uuid.UUID,
    body: SettlementApproveRequest,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_REVIEW)),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a period pending review. Rejecting requires notes."""
    svc = SettlementService(db)
    period = await svc.review(
        period_id,
        user.organization_id,
        approve=body.action == "approve",
        user_id=user.id,
        notes=body.notes,
    )
    return SettlementPeriodResponse.model_validate(period)


@router.post("/{period_id}/create-invoices", response_model=SettlementInvoicesResponse)
async def create_settlement_invoices(
    period_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_INVOICES_CREATE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    svc = SettlementService(db)
    outcome = await svc.create_invoices(period_id, user.organization_id, user_id=user.id)
    await cache.invalidate_tenant(user.organization_id)
    return SettlementInvoicesResponse(
        period=SettlementPeriodResponse.model_validate(outcome.period),
        invoice_ids=[invoice.id for invoice in outcome.invoices],
        invoice_count=len(outcome.invoices),
        skipped_zero_amount=outcome.skipped_zero_amount,
    )


@router.get("/{period_id}/transitions", response_model=list[SettlementTransitionResponse])
async def list_settlement_transitions(
    period_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_permission(PERMISSION_SETTLEMENTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = SettlementService(db)
    transitions = await svc.list_transitions(period_id, user.organization_id)
    return [SettlementTransitionResponse.model_validate(t) for t in transitions]
