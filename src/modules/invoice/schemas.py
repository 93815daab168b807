"""Pydantic v2 schemas for invoice endpoints and invoice creation."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import InvoiceStatus, InvoiceType, RecipientType, TaxType


# ---------------------------------------------------------------------------
# Request / input schemas
# ---------------------------------------------------------------------------


class InvoiceLineInput(BaseModel):
    """One position to bill. Shared by recurring templates and generated invoices."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    tax_type: TaxType = TaxType.STANDARD
    unit: str | None = Field(None, max_length=20)


class InvoiceRecipient(BaseModel):
    recipient_type: RecipientType | None = None
    recipient_id: uuid.UUID | None = None
    recipient_name: str | None = Field(None, max_length=255)
    recipient_address: str | None = None


class InvoiceMarkPaidRequest(BaseModel):
    paid_at: datetime | None = None
    notes: str | None = Field(None, max_length=1000)


class InvoiceCancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position: int
    description: str
    quantity: Decimal
    unit: str | None = None
    unit_price: Decimal
    tax_type: TaxType
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_number: str
    organization_id: uuid.UUID
    invoice_type: InvoiceType
    status: InvoiceStatus
    recipient_type: RecipientType | None = None
    recipient_id: uuid.UUID | None = None
    recipient_name: str | None = None
    recipient_address: str | None = None
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal
    currency: str
    invoice_date: date
    due_date: date | None = None
    service_period_start: date | None = None
    service_period_end: date | None = None
    sent_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    park_id: uuid.UUID | None = None
    fund_id: uuid.UUID | None = None
    lease_id: uuid.UUID | None = None
    settlement_period_id: uuid.UUID | None = None
    recurring_invoice_id: uuid.UUID | None = None
    notes: str | None = None
    items: list[InvoiceItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class InvoiceListResponse(BaseModel):
    items: list[InvoiceResponse]
    total: int
    limit: int
    offset: int
