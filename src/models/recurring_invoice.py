"""RecurringInvoice model: a template that produces a draft invoice on a schedule."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import (
    InvoiceType,
    RecipientType,
    RecurringFrequency,
    RecurringInvoiceStatus,
)

if TYPE_CHECKING:
    from src.models.invoice import Invoice


class RecurringInvoice(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "recurring_invoices"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Recipient
    recipient_type: Mapped[RecipientType] = mapped_column(nullable=False)
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_address: Mapped[str | None] = mapped_column(Text)

    invoice_type: Mapped[InvoiceType] = mapped_column(
        nullable=False, server_default="INVOICE"
    )
    # [{"description", "quantity", "unit_price", "tax_type", "unit"}]
    positions: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")

    # Schedule
    frequency: Mapped[RecurringFrequency] = mapped_column(nullable=False)
    day_of_month: Mapped[int | None] = mapped_column(Integer)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    next_run_at: Mapped[date] = mapped_column(Date, nullable=False)
    last_run_at: Mapped[date | None] = mapped_column(Date)

    status: Mapped[RecurringInvoiceStatus] = mapped_column(
        nullable=False, server_default="ACTIVE"
    )
    total_generated: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    last_invoice_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="SET NULL", use_alter=True),
    )

    notes: Mapped[str | None] = mapped_column(Text)
    park_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parks.id", ondelete="SET NULL"),
    )
    fund_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("funds.id", ondelete="SET NULL"),
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )

    last_invoice: Mapped[Invoice | None] = relationship(
        "Invoice", foreign_keys=[last_invoice_id], lazy="noload"
    )

    __table_args__ = (
        CheckConstraint(
            "day_of_month IS NULL OR day_of_month BETWEEN 1 AND 28",
            name="ck_recurring_invoices_day_of_month",
        ),
        CheckConstraint(
            "end_date IS NULL OR end_date > start_date",
            name="ck_recurring_invoices_end_after_start",
        ),
        Index("ix_recurring_invoices_organization_id", "organization_id"),
        Index("ix_recurring_invoices_status_next_run", "status", "next_run_at"),
    )

    @property
    def enabled(self) -> bool:
        return self.status == RecurringInvoiceStatus.ACTIVE
