"""Pydantic v2 schemas for recurring invoice endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.models.enums import (
    InvoiceType,
    RecipientType,
    RecurringFrequency,
    RecurringInvoiceStatus,
)
from src.modules.invoice.schemas import InvoiceLineInput
from src.money import ZERO, round_money

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RecurringInvoiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    recipient_type: RecipientType
    recipient_id: uuid.UUID | None = None
    recipient_name: str = Field(..., min_length=1, max_length=255)
    recipient_address: str | None = None
    invoice_type: InvoiceType = InvoiceType.INVOICE
    positions: list[InvoiceLineInput] = Field(..., min_length=1)
    frequency: RecurringFrequency
    day_of_month: int | None = Field(None, ge=1, le=28)
    start_date: date
    end_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    enabled: bool = True
    fund_id: uuid.UUID | None = None
    park_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def check_end_after_start(self) -> RecurringInvoiceCreate:
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RecurringInvoiceUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    recipient_type: RecipientType | None = None
    recipient_id: uuid.UUID | None = None
    recipient_name: str | None = Field(None, min_length=1, max_length=255)
    recipient_address: str | None = None
    invoice_type: InvoiceType | None = None
    positions: list[InvoiceLineInput] | None = Field(None, min_length=1)
    frequency: RecurringFrequency | None = None
    day_of_month: int | None = Field(None, ge=1, le=28)
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    enabled: bool | None = None
    fund_id: uuid.UUID | None = None
    park_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def check_end_after_start(self) -> RecurringInvoiceUpdate:
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date <= self.start_date
        ):
            raise ValueError("end_date must be after start_date")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RecurringInvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    recipient_type: RecipientType
    recipient_id: uuid.UUID | None = None
    recipient_name: str
    recipient_address: str | None = None
    invoice_type: InvoiceType
    positions: list[InvoiceLineInput]
    frequency: RecurringFrequency
    day_of_month: int | None = None
    start_date: date
    end_date: date | None = None
    next_run_at: date
    last_run_at: date | None = None
    status: RecurringInvoiceStatus
    enabled: bool
    total_generated: int
    last_invoice_id: uuid.UUID | None = None
    notes: str | None = None
    fund_id: uuid.UUID | None = None
    park_id: uuid.UUID | None = None
    created_by_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def total_net(self) -> Decimal:
        return sum(
            (round_money(p.quantity * p.unit_price) for p in self.positions), ZERO
        )


class RecurringInvoiceListResponse(BaseModel):
    items: list[RecurringInvoiceResponse]
    total: int
    limit: int
    offset: int


class UpcomingRecurringInvoice(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    recipient_name: str
    frequency: RecurringFrequency
    next_run_at: date
    last_run_at: date | None = None
    total_generated: int


class ProcessErrorItem(BaseModel):
    recurring_invoice_id: uuid.UUID
    error: str


class ProcessResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    processed: int
    succeeded: int
    failed: int
    invoice_ids: list[uuid.UUID] = Field(default_factory=list)
    errors: list[ProcessErrorItem] = Field(default_factory=list)
