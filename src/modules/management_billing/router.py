"""Management billing API router.

The whole surface is opt-in per organization and answers 404 while the
feature is switched off.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import ManagementBillingStatus, StakeholderRole, StakeholderStatus
from src.modules.management_billing.schemas import (
    BatchCalculateResponse,
    BillingBatchCalculate,
    BillingCreate,
    BillingListResponse,
    BillingResponse,
    FeeHistoryCreate,
    FeeHistoryResponse,
    StakeholderCreate,
    StakeholderListResponse,
    StakeholderResponse,
    StakeholderUpdate,
)
from src.modules.management_billing.service import ManagementBillingService
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.cache import TenantCache, get_tenant_cache
from src.modules.tenancy.constants import (
    PERMISSION_INVOICES_CREATE,
    PERMISSION_MGMT_BILLING_CREATE,
    PERMISSION_MGMT_BILLING_DELETE,
    PERMISSION_MGMT_BILLING_READ,
    PERMISSION_MGMT_BILLING_UPDATE,
)
from src.modules.tenancy.dependencies import ensure_permission, require_permission

router = APIRouter(prefix="/management-billing", tags=["management-billing"])


def require_billing_permission(permission: str):
    """Permission check followed by the per-tenant feature flag."""

    async def _check(
        user: AuthenticatedUser = Depends(require_permission(permission)),
        db: AsyncSession = Depends(get_db),
    ) -> AuthenticatedUser:
        await ManagementBillingService(db).ensure_enabled(user.organization_id)
        return user

    return _check


# ---------------------------------------------------------------------------
# Stakeholders
# ---------------------------------------------------------------------------


@router.get("/stakeholders", response_model=StakeholderListResponse)
async def list_stakeholders(
    park_id: uuid.UUID | None = Query(None),
    role: StakeholderRole | None = Query(None),
    status: StakeholderStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    items, total = await svc.list_stakeholders(
        organization_id=user.organization_id,
        park_id=park_id,
        role=role,
        status=status,
        limit=limit,
        offset=offset,
    )
    return StakeholderListResponse(
        items=[StakeholderResponse.model_validate(s) for s in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/stakeholders", response_model=StakeholderResponse, status_code=201)
async def create_stakeholder(
    body: StakeholderCreate,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    stakeholder = await svc.create_stakeholder(user.organization_id, body, created_by_id=user.id)
    return StakeholderResponse.model_validate(stakeholder)


@router.get("/stakeholders/{stakeholder_id}", response_model=StakeholderResponse)
async def get_stakeholder(
    stakeholder_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    stakeholder = await svc.get_stakeholder(stakeholder_id, user.organization_id)
    return StakeholderResponse.model_validate(stakeholder)


@router.put("/stakeholders/{stakeholder_id}", response_model=StakeholderResponse)
async def update_stakeholder(
    stakeholder_id: uuid.UUID,
    body: StakeholderUpdate,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    stakeholder = await svc.update_stakeholder(
        stakeholder_id, user.organization_id, body, user_id=user.id
    )
    return StakeholderResponse.model_validate(stakeholder)


@router.delete("/stakeholders/{stakeholder_id}", status_code=204)
async def deactivate_stakeholder(
    stakeholder_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the stakeholder turns INACTIVE and keeps its billings."""
    svc = ManagementBillingService(db)
    await svc.deactivate_stakeholder(stakeholder_id, user.organization_id)


@router.get(
    "/stakeholders/{stakeholder_id}/fee-history", response_model=list[FeeHistoryResponse]
)
async def list_fee_history(
    stakeholder_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    entries = await svc.list_fee_history(stakeholder_id, user.organization_id)
    return [FeeHistoryResponse.model_validate(e) for e in entries]


@router.post(
    "/stakeholders/{stakeholder_id}/fee-history",
    response_model=FeeHistoryResponse,
    status_code=201,
)
async def add_fee_history_entry(
    stakeholder_id: uuid.UUID,
    body: FeeHistoryCreate,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    """Close the open fee entry and make the new percentage the live fee."""
    svc = ManagementBillingService(db)
    entry = await svc.add_fee_entry(stakeholder_id, user.organization_id, body, user_id=user.id)
    return FeeHistoryResponse.model_validate(entry)


# ---------------------------------------------------------------------------
# Billings
# ---------------------------------------------------------------------------


@router.get("/billings", response_model=BillingListResponse)
async def list_billings(
    stakeholder_id: uuid.UUID | None = Query(None),
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    status: ManagementBillingStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    items, total = await svc.list_billings(
        organization_id=user.organization_id,
        stakeholder_id=stakeholder_id,
        year=year,
        month=month,
        status=status,
        limit=limit,
        offset=offset,
    )
    return BillingListResponse(
        items=[BillingResponse.model_validate(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/billings", response_model=BillingResponse, status_code=201)
async def create_billing(
    body: BillingCreate,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    """Calculate and store the fee of one stakeholder for a year or month."""
    svc = ManagementBillingService(db)
    billing = await svc.create_billing(user.organization_id, body)
    return BillingResponse.model_validate(billing)


@router.post("/billings/batch-calculate", response_model=BatchCalculateResponse)
async def batch_calculate_billings(
    body: BillingBatchCalculate,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    result = await svc.batch_calculate(user.organization_id, body.year, body.month)
    return BatchCalculateResponse.model_validate(result)


@router.get("/billings/{billing_id}", response_model=BillingResponse)
async def get_billing(
    billing_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_READ)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    billing = await svc.get_billing(billing_id, user.organization_id)
    return BillingResponse.model_validate(billing)


@router.post("/billings/{billing_id}/create-invoice", response_model=BillingResponse)
async def create_billing_invoice(
    billing_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_UPDATE)),
    db: AsyncSession = Depends(get_db),
    cache: TenantCache = Depends(get_tenant_cache),
):
    await ensure_permission(db, user, PERMISSION_INVOICES_CREATE)
    svc = ManagementBillingService(db)
    billing = await svc.create_invoice(billing_id, user.organization_id, user_id=user.id)
    await cache.invalidate_tenant(user.organization_id)
    return BillingResponse.model_validate(billing)


@router.post("/billings/{billing_id}/cancel", response_model=BillingResponse)
async def cancel_billing(
    billing_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_billing_permission(PERMISSION_MGMT_BILLING_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    svc = ManagementBillingService(db)
    billing = await svc.cancel_billing(billing_id, user.organization_id)
    return BillingResponse.model_validate(billing)
