"""ManagementBilling model: a stakeholder's management fee for one park period."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import ManagementBillingStatus, TaxType

if TYPE_CHECKING:
    from src.models.invoice import Invoice
    from src.models.park_stakeholder import ParkStakeholder


class ManagementBilling(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "management_billings"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    stakeholder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("park_stakeholders.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int | None] = mapped_column(Integer)

    # Snapshot of the calculation inputs and outputs
    base_revenue: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    fee_percentage_used: Mapped[Decimal] = mapped_column(Numeric(5, 3), nullable=False)
    fee_net: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    tax_type: Mapped[TaxType] = mapped_column(nullable=False, server_default="STANDARD")
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    fee_gross: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # [{"fund_id", "fund_name", "revenue", "share", "fee_amount"}]
    fund_breakdown: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")

    status: Mapped[ManagementBillingStatus] = mapped_column(
        nullable=False, server_default="DRAFT"
    )
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    invoice_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("invoices.id", ondelete="SET NULL"),
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    stakeholder: Mapped[ParkStakeholder] = relationship("ParkStakeholder", lazy="noload")
    invoice: Mapped[Invoice | None] = relationship("Invoice", lazy="noload")

    __table_args__ = (
        Index("ix_management_billings_organization_id", "organization_id"),
        Index(
            "uq_management_billings_stakeholder_period",
            "stakeholder_id",
            "year",
            "month",
            unique=True,
            postgresql_nulls_not_distinct=True,
        ),
    )
