from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import SettlementAction, SettlementPeriodStatus

if TYPE_CHECKING:
    from src.models.settlement_period import SettlementPeriod


class SettlementPeriodTransition(UUIDPrimaryKeyMixin, Base):
    """Immutable audit log for settlement period status changes. No updated_at column."""

    __tablename__ = "settlement_period_transitions"

    settlement_period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("settlement_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status: Mapped[SettlementPeriodStatus] = mapped_column(nullable=False)
    to_status: Mapped[SettlementPeriodStatus] = mapped_column(nullable=False)
    action: Mapped[SettlementAction] = mapped_column(nullable=False)
    triggered_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    reason: Mapped[str | None] = mapped_column(Text)
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    settlement_period: Mapped[SettlementPeriod] = relationship(
        "SettlementPeriod", back_populates="transitions", lazy="noload"
    )

    __table_args__ = (
        Index("ix_settlement_period_transitions_period_id", "settlement_period_id"),
    )
