"""Lessors and the lease contracts that bind them to plots."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Column, Date, ForeignKey, Index, String, Table, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import LeaseStatus

if TYPE_CHECKING:
    from src.models.plot import Plot


lease_plots = Table(
    "lease_plots",
    Base.metadata,
    Column("lease_id", UUID(as_uuid=True), ForeignKey("leases.id", ondelete="CASCADE"), primary_key=True),
    Column("plot_id", UUID(as_uuid=True), ForeignKey("plots.id", ondelete="CASCADE"), primary_key=True),
)


class Lessor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "lessors"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    company_name: Mapped[str | None] = mapped_column(String(255))

    street: Mapped[str | None] = mapped_column(String(255))
    house_number: Mapped[str | None] = mapped_column(String(20))
    postal_code: Mapped[str | None] = mapped_column(String(20))
    city: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str] = mapped_column(String(100), nullable=False, server_default="Deutschland")

    bank_iban: Mapped[str | None] = mapped_column(String(34))
    bank_bic: Mapped[str | None] = mapped_column(String(11))
    bank_name: Mapped[str | None] = mapped_column(String(255))

    leases: Mapped[list[Lease]] = relationship("Lease", back_populates="lessor", lazy="noload")

    __table_args__ = (
        Index("ix_lessors_organization_id", "organization_id"),
    )

    @property
    def display_name(self) -> str:
        if self.company_name:
            return self.company_name
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Unknown"

    @property
    def formatted_address(self) -> str | None:
        parts: list[str] = []
        if self.street:
            parts.append(f"{self.street} {self.house_number}" if self.house_number else self.street)
        if self.postal_code and self.city:
            parts.append(f"{self.postal_code} {self.city}")
        elif self.city:
            parts.append(self.city)
        if self.country and self.country != "Deutschland":
            parts.append(self.country)
        return ", ".join(parts) if parts else None


class Lease(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "leases"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    lessor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lessors.id", ondelete="RESTRICT"),
        nullable=False,
    )
    contract_number: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[LeaseStatus] = mapped_column(nullable=False, server_default="DRAFT")
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    lessor: Mapped[Lessor] = relationship("Lessor", back_populates="leases", lazy="noload")
    plots: Mapped[list[Plot]] = relationship(
        "Plot", secondary=lease_plots, back_populates="leases", lazy="noload"
    )

    __table_args__ = (
        Index("ix_leases_organization_status", "organization_id", "status"),
    )
