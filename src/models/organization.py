from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import OrganizationStatus

if TYPE_CHECKING:
    from src.models.organization_membership import OrganizationMembership
    from src.models.user import User


class Organization(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A tenant: a wind-park operator or a service provider such as a BF company."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    legal_name: Mapped[str | None] = mapped_column(String(255))
    slug: Mapped[str | None] = mapped_column(String(100))
    address: Mapped[dict | None] = mapped_column(JSONB)
    tax_id: Mapped[str | None] = mapped_column(String(50))
    primary_email: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[OrganizationStatus] = mapped_column(server_default="ACTIVE", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default="true", nullable=False)
    # Per-tenant feature switches, e.g. {"management_billing_enabled": true}
    settings: Mapped[dict | None] = mapped_column(JSONB, server_default="{}")

    # Relationships
    users: Mapped[list[User]] = relationship(
        "User", foreign_keys="User.organization_id", back_populates="organization", lazy="noload"
    )
    memberships: Mapped[list[OrganizationMembership]] = relationship(
        "OrganizationMembership", back_populates="organization", lazy="noload"
    )

    __table_args__ = (
        Index("ix_organizations_slug", "slug", unique=True, postgresql_where=text("slug IS NOT NULL")),
    )
