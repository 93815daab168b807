"""SettlementPeriod model: one lease settlement run (advance or final) for a park."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import AdvanceInterval, SettlementPeriodStatus, SettlementPeriodType

if TYPE_CHECKING:
    from src.models.invoice import Invoice
    from src.models.park import Park
    from src.models.settlement_period_transition import SettlementPeriodTransition


class SettlementPeriod(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "settlement_periods"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    park_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int | None] = mapped_column(Integer)
    period_type: Mapped[SettlementPeriodType] = mapped_column(
        nullable=False, server_default="FINAL"
    )
    advance_interval: Mapped[AdvanceInterval | None] = mapped_column()

    status: Mapped[SettlementPeriodStatus] = mapped_column(
        nullable=False, server_default="OPEN"
    )

    # Totals, populated by calculate
    total_revenue: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    total_minimum_rent: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    total_actual_rent: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Review
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[str | None] = mapped_column(Text)

    # Revenue source maintained by the energy settlement workflow
    linked_energy_settlement_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("energy_settlements.id", ondelete="SET NULL"),
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    park: Mapped[Park] = relationship("Park", lazy="noload")
    invoices: Mapped[list[Invoice]] = relationship(
        "Invoice",
        back_populates="settlement_period",
        lazy="noload",
    )
    transitions: Mapped[list[SettlementPeriodTransition]] = relationship(
        "SettlementPeriodTransition",
        back_populates="settlement_period",
        lazy="noload",
        order_by="SettlementPeriodTransition.created_at",
    )

    __table_args__ = (
        CheckConstraint(
            "(period_type = 'ADVANCE' AND month BETWEEN 1 AND 12) "
            "OR (period_type = 'FINAL' AND month IS NULL)",
            name="ck_settlement_periods_month_matches_type",
        ),
        Index("ix_settlement_periods_organization_id", "organization_id"),
        Index("ix_settlement_periods_park_year", "park_id", "year"),
        Index("ix_settlement_periods_status", "status"),
        Index(
            "uq_settlement_periods_park_year_month_type",
            "organization_id",
            "park_id",
            "year",
            "month",
            "period_type",
            unique=True,
            postgresql_nulls_not_distinct=True,
        ),
    )
