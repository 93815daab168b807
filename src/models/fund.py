from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Fund(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Investment vehicle (e.g. a GmbH & Co. KG) that owns shares of a park."""

    __tablename__ = "funds"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    legal_form: Mapped[str | None] = mapped_column(String(50))

    __table_args__ = (
        Index("ix_funds_organization_id", "organization_id"),
    )
