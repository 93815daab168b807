"""Invoice model: outgoing invoices and credit notes created by the billing workflows."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import InvoiceStatus, InvoiceType, RecipientType

if TYPE_CHECKING:
    from src.models.invoice_item import InvoiceItem
    from src.models.settlement_period import SettlementPeriod


class Invoice(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    invoice_type: Mapped[InvoiceType] = mapped_column(
        nullable=False, server_default="INVOICE"
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        nullable=False, server_default="DRAFT"
    )

    # Recipient (denormalized at creation time)
    recipient_type: Mapped[RecipientType | None] = mapped_column()
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    recipient_name: Mapped[str | None] = mapped_column(String(255))
    recipient_address: Mapped[str | None] = mapped_column(Text)

    # Amounts
    net_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, server_default="0"
    )
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default="EUR"
    )

    # Dates
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date)
    service_period_start: Mapped[date | None] = mapped_column(Date)
    service_period_end: Mapped[date | None] = mapped_column(Date)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Links
    park_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parks.id", ondelete="SET NULL"),
    )
    fund_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("funds.id", ondelete="SET NULL"),
    )
    lease_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("leases.id", ondelete="SET NULL"),
    )
    settlement_period_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("settlement_periods.id", ondelete="SET NULL"),
    )
    recurring_invoice_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("recurring_invoices.id", ondelete="SET NULL"),
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )

    # Relationships
    settlement_period: Mapped[SettlementPeriod | None] = relationship(
        "SettlementPeriod", back_populates="invoices", lazy="noload"
    )
    items: Mapped[list[InvoiceItem]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        lazy="noload",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    __table_args__ = (
        Index("ix_invoices_organization_id", "organization_id"),
        Index("ix_invoices_status", "status"),
        Index(
            "ix_invoices_settlement_period_id",
            "settlement_period_id",
            postgresql_where="settlement_period_id IS NOT NULL",
        ),
        Index(
            "ix_invoices_recurring_invoice_id",
            "recurring_invoice_id",
            postgresql_where="recurring_invoice_id IS NOT NULL",
        ),
    )
