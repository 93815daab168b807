"""Management billing service: stakeholders, fee history, fee billings and their invoices."""

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.exceptions import (
    AppException,
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from src.models.energy_settlement import EnergySettlement
from src.models.enums import (
    InvoiceType,
    ManagementBillingStatus,
    RecipientType,
    StakeholderRole,
    StakeholderStatus,
)
from src.models.fund import Fund
from src.models.management_billing import ManagementBilling
from src.models.organization import Organization
from src.models.park import Park
from src.models.park_stakeholder import ParkStakeholder, StakeholderFeeHistory
from src.modules.invoice.constants import tax_rate_percent
from src.modules.invoice.schemas import InvoiceLineInput, InvoiceRecipient
from src.modules.invoice.service import InvoiceService
from src.modules.management_billing.constants import (
    BF_ROLES,
    CANCELLABLE_STATUSES,
    FEATURE_FLAG_KEY,
    INITIAL_FEE_REASON,
    INVOICEABLE_STATUSES,
    ROLE_LABELS,
)
from src.modules.management_billing.fee_calculator import (
    FundRevenue,
    compute_fee,
    compute_fund_breakdown,
)
from src.modules.management_billing.schemas import (
    BillingCreate,
    FeeHistoryCreate,
    StakeholderCreate,
    StakeholderUpdate,
)
from src.money import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    billing_ids: list[uuid.UUID] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)


def check_billing_config(
    role: StakeholderRole, billing_enabled: bool, fee_percentage: Decimal | None
) -> None:
    """A BF role that bills must carry a positive fee percentage."""
    if role in BF_ROLES and billing_enabled and (fee_percentage is None or fee_percentage <= 0):
        raise ValidationException(
            "Business management roles with billing enabled need a fee percentage",
            details=[{"field": "fee_percentage", "message": "must be greater than 0"}],
        )


def billing_period_bounds(year: int, month: int | None) -> tuple[date, date]:
    if month is None:
        return date(year, 1, 1), date(year, 12, 31)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def billing_period_label(year: int, month: int | None) -> str:
    return str(year) if month is None else f"{month:02d}/{year}"


def _format_address(address: dict | None) -> str | None:
    if not address:
        return None
    return ", ".join(str(value) for value in address.values() if value)


class ManagementBillingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Feature flag
    # ------------------------------------------------------------------

    async def is_enabled(self, organization_id: uuid.UUID) -> bool:
        """Tenant setting, falling back to the deployment default."""
        result = await self.db.execute(
            select(Organization.settings).where(Organization.id == organization_id)
        )
        org_settings = result.scalar_one_or_none() or {}
        value = org_settings.get(FEATURE_FLAG_KEY)
        if value is None:
            return settings.management_billing_enabled
        return bool(value)

    async def ensure_enabled(self, organization_id: uuid.UUID) -> None:
        if not await self.is_enabled(organization_id):
            raise NotFoundException("Management billing is not enabled for this organization")

    # ------------------------------------------------------------------
    # Stakeholders
    # ------------------------------------------------------------------

    async def get_stakeholder(
        self,
        stakeholder_id: uuid.UUID,
        organization_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> ParkStakeholder:
        query = select(ParkStakeholder).where(
            ParkStakeholder.id == stakeholder_id,
            ParkStakeholder.organization_id == organization_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        stakeholder = result.scalar_one_or_none()
        if stakeholder is None:
            raise NotFoundException(f"Stakeholder {stakeholder_id} not found")
        return stakeholder

    async def list_stakeholders(
        self,
        organization_id: uuid.UUID,
        park_id: uuid.UUID | None = None,
        role: StakeholderRole | None = None,
        status: StakeholderStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ParkStakeholder], int]:
        filters = [ParkStakeholder.organization_id == organization_id]
        if park_id is not None:
            filters.append(ParkStakeholder.park_id == park_id)
        if role is not None:
            filters.append(ParkStakeholder.role == role)
        if status is not None:
            filters.append(ParkStakeholder.status == status)

        total_result = await self.db.execute(
            select(func.count()).select_from(ParkStakeholder).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(ParkStakeholder)
            .where(*filters)
            .order_by(ParkStakeholder.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def create_stakeholder(
        self,
        organization_id: uuid.UUID,
        data: StakeholderCreate,
        created_by_id: uuid.UUID | None = None,
    ) -> ParkStakeholder:
        park_result = await self.db.execute(
            select(Park.id).where(
                Park.id == data.park_id,
                Park.organization_id == data.park_organization_id,
            )
        )
        if park_result.scalar_one_or_none() is None:
            raise NotFoundException(
                f"Park {data.park_id} not found in organization {data.park_organization_id}"
            )

        existing = await self.db.execute(
            select(ParkStakeholder.id).where(
                ParkStakeholder.organization_id == organization_id,
                ParkStakeholder.park_id == data.park_id,
                ParkStakeholder.role == data.role,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(
                f"Role {data.role.value} is already assigned for this park"
            )

        check_billing_config(data.role, data.billing_enabled, data.fee_percentage)

        valid_from = data.valid_from or datetime.now(UTC).date()
        stakeholder = ParkStakeholder(
            organization_id=organization_id,
            park_id=data.park_id,
            park_organization_id=data.park_organization_id,
            role=data.role,
            fee_percentage=data.fee_percentage,
            billing_enabled=data.billing_enabled,
            tax_type=data.tax_type,
            visible_fund_ids=[str(fund_id) for fund_id in data.visible_fund_ids],
            valid_from=valid_from,
            valid_to=data.valid_to,
            status=StakeholderStatus.ACTIVE,
            notes=data.notes,
        )
        self.db.add(stakeholder)
        await self.db.flush()

        if data.fee_percentage is not None:
            self.db.add(
                StakeholderFeeHistory(
                    stakeholder_id=stakeholder.id,
                    fee_percentage=data.fee_percentage,
                    valid_from=valid_from,
                    reason=INITIAL_FEE_REASON,
                    created_by_id=created_by_id,
                )
            )
            await self.db.flush()

        logger.info(
            "Created stakeholder %s (%s) for park %s", stakeholder.id, data.role.value, data.park_id
        )
        return stakeholder

    async def update_stakeholder(
        self,
        stakeholder_id: uuid.UUID,
        organization_id: uuid.UUID,
        data: StakeholderUpdate,
        user_id: uuid.UUID | None = None,
    ) -> ParkStakeholder:
        """Update billing settings. A changed fee goes through the fee history."""
        stakeholder = await self.get_stakeholder(stakeholder_id, organization_id, for_update=True)
        changes = data.model_dump(exclude_unset=True)
        new_fee = changes.pop("fee_percentage", None)
        reason = changes.pop("fee_change_reason", None)
        for name in ("billing_enabled", "tax_type", "visible_fund_ids", "status"):
            if name in changes and changes[name] is None:
                del changes[name]

        check_billing_config(
            stakeholder.role,
            changes.get("billing_enabled", stakeholder.billing_enabled),
            new_fee if new_fee is not None else stakeholder.fee_percentage,
        )

        if new_fee is not None and new_fee != stakeholder.fee_percentage:
            await self._open_fee_entry(
                stakeholder, new_fee, datetime.now(UTC).date(), reason, user_id
            )

        if "visible_fund_ids" in changes:
            changes["visible_fund_ids"] = [str(fund_id) for fund_id in changes["visible_fund_ids"]]
        for name, value in changes.items():
            setattr(stakeholder, name, value)

        await self.db.flush()
        logger.info("Updated stakeholder %s", stakeholder.id)
        return stakeholder

    async def deactivate_stakeholder(
        self, stakeholder_id: uuid.UUID, organization_id: uuid.UUID
    ) -> ParkStakeholder:
        stakeholder = await self.get_stakeholder(stakeholder_id, organization_id, for_update=True)
        stakeholder.status = StakeholderStatus.INACTIVE
        stakeholder.valid_to = datetime.now(UTC).date()
        await self.db.flush()
        logger.info("Deactivated stakeholder %s", stakeholder.id)
        return stakeholder

    # ------------------------------------------------------------------
    # Fee history
    # ------------------------------------------------------------------

    async def list_fee_history(
        self, stakeholder_id: uuid.UUID, organization_id: uuid.UUID
    ) -> list[StakeholderFeeHistory]:
        await self.get_stakeholder(stakeholder_id, organization_id)
        result = await self.db.execute(
            select(StakeholderFeeHistory)
            .where(StakeholderFeeHistory.stakeholder_id == stakeholder_id)
            .order_by(StakeholderFeeHistory.valid_from.desc(), StakeholderFeeHistory.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_fee_entry(
        self,
        stakeholder_id: uuid.UUID,
        organization_id: uuid.UUID,
        data: FeeHistoryCreate,
        user_id: uuid.UUID | None = None,
    ) -> StakeholderFeeHistory:
        stakeholder = await self.get_stakeholder(stakeholder_id, organization_id, for_update=True)
        return await self._open_fee_entry(
            stakeholder, data.fee_percentage, data.valid_from, data.reason, user_id
        )

    async def _open_fee_entry(
        self,
        stakeholder: ParkStakeholder,
        fee_percentage: Decimal,
        valid_from: date,
        reason: str | None,
        user_id: uuid.UUID | None,
    ) -> StakeholderFeeHistory:
        """Close the open history entry, open a new one and make it the live fee."""
        result = await self.db.execute(
            select(StakeholderFeeHistory)
            .where(
                StakeholderFeeHistory.stakeholder_id == stakeholder.id,
                StakeholderFeeHistory.valid_until.is_(None),
            )
            .with_for_update()
        )
        open_entries = list(result.scalars().all())
        for entry in open_entries:
            if entry.valid_from > valid_from:
                raise ValidationException(
                    "A new fee cannot start before the current fee entry",
                    details=[{"field": "valid_from", "message": f"must be on or after {entry.valid_from}"}],
                )
        for entry in open_entries:
            entry.valid_until = valid_from

        new_entry = StakeholderFeeHistory(
            stakeholder_id=stakeholder.id,
            fee_percentage=fee_percentage,
            valid_from=valid_from,
            reason=reason,
            created_by_id=user_id,
        )
        self.db.add(new_entry)
        previous = stakeholder.fee_percentage
        stakeholder.fee_percentage = fee_percentage
        await self.db.flush()

        logger.info(
            "Stakeholder %s fee changed %s -> %s from %s",
            stakeholder.id,
            previous,
            fee_percentage,
            valid_from,
        )
        return new_entry

    # ------------------------------------------------------------------
    # Billings
    # ------------------------------------------------------------------

    async def get_billing(
        self,
        billing_id: uuid.UUID,
        organization_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> ManagementBilling:
        query = select(ManagementBilling).where(
            ManagementBilling.id == billing_id,
            ManagementBilling.organization_id == organization_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        billing = result.scalar_one_or_none()
        if billing is None:
            raise NotFoundException(f"Management billing {billing_id} not found")
        return billing

    async def list_billings(
        self,
        organization_id: uuid.UUID,
        stakeholder_id: uuid.UUID | None = None,
        year: int | None = None,
        month: int | None = None,
        status: ManagementBillingStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ManagementBilling], int]:
        filters = [ManagementBilling.organization_id == organization_id]
        if stakeholder_id is not None:
            filters.append(ManagementBilling.stakeholder_id == stakeholder_id)
        if year is not None:
            filters.append(ManagementBilling.year == year)
        if month is not None:
            filters.append(ManagementBilling.month == month)
        if status is not None:
            filters.append(ManagementBilling.status == status)

        total_result = await self.db.execute(
            select(func.count()).select_from(ManagementBilling).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(ManagementBilling)
            .where(*filters)
            .order_by(
                ManagementBilling.year.desc(),
                ManagementBilling.month.desc().nulls_first(),
                ManagementBilling.created_at.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def create_billing(
        self, organization_id: uuid.UUID, data: BillingCreate
    ) -> ManagementBilling:
        stakeholder = await self.get_stakeholder(data.stakeholder_id, organization_id)
        return await self._calculate_for(stakeholder, data.year, data.month, data.notes)

    async def batch_calculate(
        self, organization_id: uuid.UUID, year: int, month: int | None = None
    ) -> BatchResult:
        """Calculate the period for every active, billing-enabled stakeholder.

        Stakeholders already billed for the period are skipped. Domain errors
        (missing fee, no revenue) are reported per stakeholder.
        """
        result = await self.db.execute(
            select(ParkStakeholder)
            .where(
                ParkStakeholder.organization_id == organization_id,
                ParkStakeholder.status == StakeholderStatus.ACTIVE,
                ParkStakeholder.billing_enabled.is_(True),
            )
            .order_by(ParkStakeholder.created_at.asc())
        )
        stakeholders = list(result.scalars().all())

        outcome = BatchResult(processed=len(stakeholders))
        for stakeholder in stakeholders:
            try:
                async with self.db.begin_nested():
                    billing = await self._calculate_for(stakeholder, year, month)
            except ConflictException:
                outcome.skipped += 1
                continue
            except AppException as exc:
                logger.warning(
                    "Management billing for stakeholder %s failed: %s", stakeholder.id, exc.message
                )
                outcome.failed += 1
                outcome.errors.append({"stakeholder_id": stakeholder.id, "error": exc.message})
                continue
            outcome.succeeded += 1
            outcome.billing_ids.append(billing.id)

        logger.info(
            "Batch management billing %s for org %s: %d processed, %d succeeded, %d skipped, %d failed",
            billing_period_label(year, month),
            organization_id,
            outcome.processed,
            outcome.succeeded,
            outcome.skipped,
            outcome.failed,
        )
        return outcome

    async def _calculate_for(
        self,
        stakeholder: ParkStakeholder,
        year: int,
        month: int | None,
        notes: str | None = None,
    ) -> ManagementBilling:
        if stakeholder.status != StakeholderStatus.ACTIVE:
            raise BusinessRuleException("Inactive stakeholders cannot be billed")
        if not stakeholder.billing_enabled:
            raise BusinessRuleException("Billing is not enabled for this stakeholder")
        if stakeholder.fee_percentage is None or stakeholder.fee_percentage <= 0:
            raise BusinessRuleException("Stakeholder has no fee percentage")
        period_start, period_end = billing_period_bounds(year, month)
        if period_end < stakeholder.valid_from or (
            stakeholder.valid_to is not None and period_start > stakeholder.valid_to
        ):
            raise BusinessRuleException(
                f"Stakeholder is not valid in {billing_period_label(year, month)}"
            )

        period_filter = (
            ManagementBilling.month.is_(None) if month is None else ManagementBilling.month == month
        )
        existing_result = await self.db.execute(
            select(ManagementBilling).where(
                ManagementBilling.stakeholder_id == stakeholder.id,
                ManagementBilling.year == year,
                period_filter,
            )
        )
        billing = existing_result.scalar_one_or_none()
        if billing is not None and billing.status != ManagementBillingStatus.CANCELLED:
            raise ConflictException(
                f"Stakeholder {stakeholder.id} is already billed for {billing_period_label(year, month)}"
            )

        funds = await self._load_fund_revenue(stakeholder, year, month)
        base_revenue = sum((f.revenue for f in funds), ZERO)
        if base_revenue <= ZERO:
            raise BusinessRuleException(
                f"No energy revenue recorded for park {stakeholder.park_id} "
                f"in {billing_period_label(year, month)}"
            )

        # Frozen at calculation time; later fee changes leave this billing alone
        fee_percentage = stakeholder.fee_percentage
        tax_rate = tax_rate_percent(stakeholder.tax_type)
        fee = compute_fee(base_revenue, fee_percentage, tax_rate / Decimal(100))
        breakdown = []
        if any(f.fund_id is not None for f in funds):
            breakdown = [
                share.to_json() for share in compute_fund_breakdown(fee.fee_net, base_revenue, funds)
            ]

        if billing is None:
            billing = ManagementBilling(
                organization_id=stakeholder.organization_id,
                stakeholder_id=stakeholder.id,
                year=year,
                month=month,
            )
            self.db.add(billing)

        billing.base_revenue = base_revenue
        billing.fee_percentage_used = fee_percentage
        billing.fee_net = fee.fee_net
        billing.tax_type = stakeholder.tax_type
        billing.tax_rate = tax_rate
        billing.tax_amount = fee.tax_amount
        billing.fee_gross = fee.fee_gross
        billing.fund_breakdown = breakdown
        billing.status = ManagementBillingStatus.CALCULATED
        billing.calculated_at = datetime.now(UTC)
        billing.invoice_id = None
        if notes is not None:
            billing.notes = notes
        await self.db.flush()

        logger.info(
            "Calculated management fee for stakeholder %s %s: %s %% of %s = %s net",
            stakeholder.id,
            billing_period_label(year, month),
            fee_percentage,
            base_revenue,
            fee.fee_net,
        )
        return billing

    async def _load_fund_revenue(
        self, stakeholder: ParkStakeholder, year: int, month: int | None
    ) -> list[FundRevenue]:
        """Energy revenue of the park for the period, grouped by fund."""
        filters = [
            EnergySettlement.organization_id == stakeholder.park_organization_id,
            EnergySettlement.park_id == stakeholder.park_id,
            EnergySettlement.year == year,
        ]
        if month is not None:
            filters.append(EnergySettlement.month == month)
        if stakeholder.visible_fund_ids:
            visible = [uuid.UUID(str(fund_id)) for fund_id in stakeholder.visible_fund_ids]
            filters.append(EnergySettlement.fund_id.in_(visible))

        result = await self.db.execute(
            select(
                EnergySettlement.fund_id,
                Fund.name,
                func.sum(EnergySettlement.net_operator_revenue),
            )
            .outerjoin(Fund, Fund.id == EnergySettlement.fund_id)
            .where(*filters)
            .group_by(EnergySettlement.fund_id, Fund.name)
            .order_by(Fund.name.asc().nulls_last())
        )
        return [
            FundRevenue(fund_id=fund_id, fund_name=fund_name, revenue=round_money(to_decimal(total)))
            for fund_id, fund_name, total in result.all()
        ]

    async def create_invoice(
        self,
        billing_id: uuid.UUID,
        organization_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
    ) -> ManagementBilling:
        """Bill the calculated fee to the park's owning organization."""
        billing = await self.get_billing(billing_id, organization_id, for_update=True)
        if billing.status not in INVOICEABLE_STATUSES:
            raise BusinessRuleException(
                f"Only calculated billings can be invoiced (status is {billing.status.value})"
            )
        if tax_rate_percent(billing.tax_type) != billing.tax_rate:
            raise BusinessRuleException(
                f"The {billing.tax_type.value} tax rate changed since calculation; "
                "cancel and recalculate the billing"
            )
        stakeholder = await self.get_stakeholder(billing.stakeholder_id, organization_id)

        park_result = await self.db.execute(select(Park.name).where(Park.id == stakeholder.park_id))
        park_name = park_result.scalar_one_or_none() or str(stakeholder.park_id)
        owner_result = await self.db.execute(
            select(Organization).where(Organization.id == stakeholder.park_organization_id)
        )
        owner = owner_result.scalar_one_or_none()
        if owner is None:
            raise NotFoundException(f"Organization {stakeholder.park_organization_id} not found")

        label = billing_period_label(billing.year, billing.month)
        period_start, period_end = billing_period_bounds(billing.year, billing.month)
        line = InvoiceLineInput(
            description=(
                f"{ROLE_LABELS[stakeholder.role]} fee {park_name} {label}: "
                f"{billing.fee_percentage_used} % of {billing.base_revenue}"
            ),
            quantity=Decimal(1),
            unit_price=billing.fee_net,
            tax_type=billing.tax_type,
            unit="flat",
        )
        invoice = await InvoiceService(self.db).create_invoice(
            organization_id,
            [line],
            invoice_type=InvoiceType.INVOICE,
            recipient=InvoiceRecipient(
                recipient_type=RecipientType.CUSTOM,
                recipient_id=owner.id,
                recipient_name=owner.legal_name or owner.name,
                recipient_address=_format_address(owner.address),
            ),
            service_period_start=period_start,
            service_period_end=period_end,
            park_id=stakeholder.park_id,
            created_by_id=user_id,
            notes=f"Management fee {label}",
        )

        billing.invoice_id = invoice.id
        billing.status = ManagementBillingStatus.INVOICED
        await self.db.flush()
        logger.info("Management billing %s invoiced as %s", billing.id, invoice.invoice_number)
        return billing

    async def cancel_billing(
        self, billing_id: uuid.UUID, organization_id: uuid.UUID
    ) -> ManagementBilling:
        billing = await self.get_billing(billing_id, organization_id, for_update=True)
        if billing.status not in CANCELLABLE_STATUSES:
            raise BusinessRuleException(
                f"Billing in status {billing.status.value} cannot be cancelled"
            )
        billing.status = ManagementBillingStatus.CANCELLED
        await self.db.flush()
        logger.info("Cancelled management billing %s", billing.id)
        return billing
