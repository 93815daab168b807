"""Cadastral plots and the areas on them that earn rent."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import CompensationType, PlotAreaType, PlotStatus

if TYPE_CHECKING:
    from src.models.lease import Lease
    from src.models.park import Park


class Plot(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "plots"

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
    cadastral_district: Mapped[str] = mapped_column(String(100), nullable=False)
    field_number: Mapped[str] = mapped_column(String(20), nullable=False)
    plot_number: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[PlotStatus] = mapped_column(nullable=False, server_default="ACTIVE")

    # Relationships
    park: Mapped[Park] = relationship("Park", back_populates="plots", lazy="noload")
    areas: Mapped[list[PlotArea]] = relationship(
        "PlotArea", back_populates="plot", lazy="noload", cascade="all, delete-orphan"
    )
    leases: Mapped[list[Lease]] = relationship(
        "Lease", secondary="lease_plots", back_populates="plots", lazy="noload"
    )

    __table_args__ = (
        Index("ix_plots_organization_park", "organization_id", "park_id"),
    )


class PlotArea(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "plot_areas"

    plot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("plots.id", ondelete="CASCADE"),
        nullable=False,
    )
    area_type: Mapped[PlotAreaType] = mapped_column(nullable=False)
    area_sqm: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    length_m: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    compensation_type: Mapped[CompensationType] = mapped_column(
        nullable=False, server_default="ANNUAL"
    )
    # Overrides the rate-based amount when set
    compensation_fixed_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    compensation_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    plot: Mapped[Plot] = relationship("Plot", back_populates="areas", lazy="noload")

    __table_args__ = (
        Index("ix_plot_areas_plot_id", "plot_id"),
    )
