"""Park stakeholders (service providers such as BF companies) and their fee history."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import StakeholderRole, StakeholderStatus, TaxType

if TYPE_CHECKING:
    from src.models.park import Park


class ParkStakeholder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Role a stakeholder organization plays for a park owned by another organization."""

    __tablename__ = "park_stakeholders"

    # The stakeholder tenant that owns this record
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
    park_organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[StakeholderRole] = mapped_column(nullable=False)

    fee_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 3))
    billing_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    tax_type: Mapped[TaxType] = mapped_column(nullable=False, server_default="STANDARD")
    visible_fund_ids: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date)
    status: Mapped[StakeholderStatus] = mapped_column(nullable=False, server_default="ACTIVE")
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    park: Mapped[Park] = relationship("Park", lazy="noload")
    fee_history: Mapped[list[StakeholderFeeHistory]] = relationship(
        "StakeholderFeeHistory",
        back_populates="stakeholder",
        lazy="noload",
        order_by="StakeholderFeeHistory.valid_from.desc()",
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "park_id", "role", name="uq_park_stakeholders_org_park_role"
        ),
        Index("ix_park_stakeholders_park_id", "park_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == StakeholderStatus.ACTIVE


class StakeholderFeeHistory(UUIDPrimaryKeyMixin, Base):
    """Append-only ledger of fee percentage changes. The open entry has no valid_until."""

    __tablename__ = "stakeholder_fee_history"

    stakeholder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("park_stakeholders.id", ondelete="CASCADE"),
        nullable=False,
    )
    fee_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 3), nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date | None] = mapped_column(Date)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    stakeholder: Mapped[ParkStakeholder] = relationship(
        "ParkStakeholder", back_populates="fee_history", lazy="noload"
    )

    __table_args__ = (
        Index("ix_stakeholder_fee_history_stakeholder_id", "stakeholder_id"),
    )
