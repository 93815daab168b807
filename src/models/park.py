"""Park master data: the park, its turbines and its revenue-share phases."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import TurbineStatus

if TYPE_CHECKING:
    from src.models.plot import Plot


class Park(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "parks"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(50))
    commissioning_date: Mapped[date | None] = mapped_column(Date)

    # Lease configuration
    minimum_rent_per_turbine: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    turbine_site_share_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    pool_share_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    # Compensation rates for special areas
    access_road_rate_per_sqm: Mapped[Decimal | None] = mapped_column(Numeric(10, 4))
    compensation_area_rate_per_sqm: Mapped[Decimal | None] = mapped_column(Numeric(10, 4))
    cable_rate_per_m: Mapped[Decimal | None] = mapped_column(Numeric(10, 4))

    # Relationships
    turbines: Mapped[list[Turbine]] = relationship(
        "Turbine", back_populates="park", lazy="noload"
    )
    revenue_phases: Mapped[list[ParkRevenuePhase]] = relationship(
        "ParkRevenuePhase",
        back_populates="park",
        lazy="noload",
        order_by="ParkRevenuePhase.phase_number",
    )
    plots: Mapped[list[Plot]] = relationship("Plot", back_populates="park", lazy="noload")

    __table_args__ = (
        Index("ix_parks_organization_id", "organization_id"),
    )


class Turbine(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "turbines"

    park_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )
    designation: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[TurbineStatus] = mapped_column(nullable=False, server_default="ACTIVE")
    rated_power_kw: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    park: Mapped[Park] = relationship("Park", back_populates="turbines", lazy="noload")

    __table_args__ = (
        Index("ix_turbines_park_id_status", "park_id", "status"),
    )


class ParkRevenuePhase(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Revenue share percentage for a range of operating years (1-based)."""

    __tablename__ = "park_revenue_phases"

    park_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
    )
    phase_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_year: Mapped[int] = mapped_column(Integer, nullable=False)
    end_year: Mapped[int | None] = mapped_column(Integer)
    revenue_share_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    park: Mapped[Park] = relationship("Park", back_populates="revenue_phases", lazy="noload")

    __table_args__ = (
        UniqueConstraint("park_id", "phase_number", name="uq_park_revenue_phases_park_phase"),
    )
