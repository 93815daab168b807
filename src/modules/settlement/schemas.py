"""Pydantic v2 schemas for settlement period endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.enums import (
    AdvanceInterval,
    PlotAreaType,
    SettlementAction,
    SettlementPeriodStatus,
    SettlementPeriodType,
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SettlementPeriodCreate(BaseModel):
    park_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)
    period_type: SettlementPeriodType = SettlementPeriodType.FINAL
    advance_interval: AdvanceInterval | None = None
    total_revenue: Decimal | None = Field(None, ge=0)
    linked_energy_settlement_id: uuid.UUID | None = None
    notes: str | None = Field(None, max_length=5000)

    @model_validator(mode="after")
    def check_month_matches_type(self) -> SettlementPeriodCreate:
        if self.period_type == SettlementPeriodType.ADVANCE:
            if self.month is None:
                raise ValueError("month is required for ADVANCE periods")
            if self.advance_interval is None:
                self.advance_interval = AdvanceInterval.MONTHLY
        else:
            if self.month is not None:
                raise ValueError("month must be empty for FINAL periods")
            if self.advance_interval is not None:
                raise ValueError("advance_interval only applies to ADVANCE periods")
        return self


class SettlementPeriodBulkCreate(BaseModel):
    park_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    advance_interval: AdvanceInterval = AdvanceInterval.MONTHLY
    include_final: bool = True


class SettlementPeriodUpdate(BaseModel):
    """Partial update. ``status`` is routed through the workflow, never written directly."""

    status: SettlementPeriodStatus | None = None
    notes: str | None = Field(None, max_length=5000)
    review_notes: str | None = Field(None, max_length=5000)
    total_revenue: Decimal | None = Field(None, ge=0)
    linked_energy_settlement_id: uuid.UUID | None = None


class SettlementApproveRequest(BaseModel):
    action: Literal["approve", "reject"]
    notes: str | None = Field(None, max_length=5000)


class SettlementCalculateRequest(BaseModel):
    total_revenue: Decimal | None = Field(None, ge=0)
    save_result: bool = True


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SettlementPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    park_id: uuid.UUID
    year: int
    month: int | None = None
    period_type: SettlementPeriodType
    advance_interval: AdvanceInterval | None = None
    status: SettlementPeriodStatus
    total_revenue: Decimal | None = None
    total_minimum_rent: Decimal | None = None
    total_actual_rent: Decimal | None = None
    calculated_at: datetime | None = None
    reviewed_by_id: uuid.UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    linked_energy_settlement_id: uuid.UUID | None = None
    notes: str | None = None
    created_by_id: uuid.UUID | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SettlementPeriodListResponse(BaseModel):
    items: list[SettlementPeriodResponse]
    total: int
    limit: int
    offset: int


class SettlementBulkCreateResponse(BaseModel):
    created: list[SettlementPeriodResponse]
    skipped: int


class SettlementTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    from_status: SettlementPeriodStatus
    to_status: SettlementPeriodStatus
    action: SettlementAction
    triggered_by: uuid.UUID | None = None
    reason: str | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime


# -- Calculation results ----------------------------------------------------


class AdvanceLeaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lease_id: uuid.UUID
    lessor_id: uuid.UUID
    lessor_name: str
    lessor_address: str | None = None
    plot_count: int
    turbine_site_share: Decimal
    pool_share: Decimal
    special_compensation: Decimal
    monthly_minimum_rent: Decimal


class AdvanceTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lease_count: int
    total_monthly_minimum_rent: Decimal
    yearly_minimum_rent_base: Decimal


class AreaPaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    area_id: uuid.UUID
    plot_id: uuid.UUID
    plot_label: str
    area_type: PlotAreaType
    ratio: Decimal
    minimum_rent: Decimal
    revenue_share: Decimal
    amount: Decimal


class FinalLeaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lease_id: uuid.UUID
    lessor_id: uuid.UUID
    lessor_name: str
    lessor_address: str | None = None
    plot_count: int
    total_minimum_rent: Decimal
    total_revenue_share: Decimal
    total_payment: Decimal
    advances_paid: Decimal
    final_payment: Decimal
    is_credit: bool
    areas: list[AreaPaymentResponse] = Field(default_factory=list)


class FinalTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lease_count: int
    total_revenue: Decimal
    years_in_operation: int
    revenue_share_percentage: Decimal | None = None
    revenue_per_turbine: Decimal
    payment_per_turbine: Decimal
    total_minimum_rent: Decimal
    total_revenue_share: Decimal
    total_payment: Decimal
    total_advances_paid: Decimal
    total_final_payment: Decimal


class AdvanceCalculationResponse(BaseModel):
    period_type: Literal[SettlementPeriodType.ADVANCE] = SettlementPeriodType.ADVANCE
    park_id: uuid.UUID
    park_name: str
    year: int
    month: int | None = None
    advance_interval: AdvanceInterval
    calculated_at: datetime
    leases: list[AdvanceLeaseResponse]
    totals: AdvanceTotalsResponse


class FinalCalculationResponse(BaseModel):
    period_type: Literal[SettlementPeriodType.FINAL] = SettlementPeriodType.FINAL
    park_id: uuid.UUID
    park_name: str
    year: int
    calculated_at: datetime
    leases: list[FinalLeaseResponse]
    totals: FinalTotalsResponse


class SettlementCalculateResponse(BaseModel):
    period: SettlementPeriodResponse
    calculation: AdvanceCalculationResponse | FinalCalculationResponse = Field(
        ..., discriminator="period_type"
    )
    saved: bool


class SettlementInvoicesResponse(BaseModel):
    period: SettlementPeriodResponse
    invoice_ids: list[uuid.UUID]
    invoice_count: int
    skipped_zero_amount: int
