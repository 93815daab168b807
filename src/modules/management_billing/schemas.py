"""Pydantic v2 schemas for management billing endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.enums import (
    ManagementBillingStatus,
    StakeholderRole,
    StakeholderStatus,
    TaxType,
)

# ---------------------------------------------------------------------------
# Stakeholders
# ---------------------------------------------------------------------------


class StakeholderCreate(BaseModel):
    park_id: uuid.UUID
    park_organization_id: uuid.UUID
    role: StakeholderRole
    fee_percentage: Decimal | None = Field(None, gt=0, le=100)
    billing_enabled: bool = False
    tax_type: TaxType = TaxType.STANDARD
    visible_fund_ids: list[uuid.UUID] = Field(default_factory=list)
    valid_from: date | None = None
    valid_to: date | None = None
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_validity_window(self) -> StakeholderCreate:
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        return self


class StakeholderUpdate(BaseModel):
    fee_percentage: Decimal | None = Field(None, gt=0, le=100)
    fee_change_reason: str | None = Field(None, max_length=500)
    billing_enabled: bool | None = None
    tax_type: TaxType | None = None
    visible_fund_ids: list[uuid.UUID] | None = None
    valid_to: date | None = None
    status: StakeholderStatus | None = None
    notes: str | None = Field(None, max_length=2000)


class FeeHistoryCreate(BaseModel):
    fee_percentage: Decimal = Field(..., gt=0, le=100)
    valid_from: date
    reason: str | None = Field(None, max_length=500)


class StakeholderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    park_id: uuid.UUID
    park_organization_id: uuid.UUID
    role: StakeholderRole
    fee_percentage: Decimal | None = None
    billing_enabled: bool
    tax_type: TaxType
    visible_fund_ids: list[uuid.UUID] = Field(default_factory=list)
    valid_from: date
    valid_to: date | None = None
    status: StakeholderStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class StakeholderListResponse(BaseModel):
    items: list[StakeholderResponse]
    total: int
    limit: int
    offset: int


class FeeHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    stakeholder_id: uuid.UUID
    fee_percentage: Decimal
    valid_from: date
    valid_until: date | None = None
    reason: str | None = None
    created_by_id: uuid.UUID | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Billings
# ---------------------------------------------------------------------------


class BillingCreate(BaseModel):
    stakeholder_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)
    notes: str | None = Field(None, max_length=2000)


class BillingBatchCalculate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)


class FundFeeShareResponse(BaseModel):
    fund_id: uuid.UUID | None = None
    fund_name: str | None = None
    revenue: Decimal
    share: Decimal
    fee_amount: Decimal


class BillingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    stakeholder_id: uuid.UUID
    year: int
    month: int | None = None
    base_revenue: Decimal
    fee_percentage_used: Decimal
    fee_net: Decimal
    tax_type: TaxType
    tax_rate: Decimal
    tax_amount: Decimal
    fee_gross: Decimal
    fund_breakdown: list[FundFeeShareResponse] = Field(default_factory=list)
    status: ManagementBillingStatus
    calculated_at: datetime | None = None
    invoice_id: uuid.UUID | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class BillingListResponse(BaseModel):
    items: list[BillingResponse]
    total: int
    limit: int
    offset: int


class BatchErrorItem(BaseModel):
    stakeholder_id: uuid.UUID
    error: str


class BatchCalculateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    processed: int
    succeeded: int
    failed: int
    skipped: int
    billing_ids: list[uuid.UUID] = Field(default_factory=list)
    errors: list[BatchErrorItem] = Field(default_factory=list)
