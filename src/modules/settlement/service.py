"""Settlement period service: CRUD, workflow transitions, calculation and invoicing."""

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from src.models.enums import (
    CompensationType,
    InvoiceType,
    LeaseStatus,
    PlotStatus,
    RecipientType,
    SettlementAction,
    SettlementPeriodStatus,
    SettlementPeriodType,
    TaxType,
    TurbineStatus,
)
from src.models.invoice import Invoice
from src.models.lease import Lease
from src.models.park import Park, Turbine
from src.models.plot import Plot
from src.models.settlement_period import SettlementPeriod
from src.models.settlement_period_transition import SettlementPeriodTransition
from src.modules.invoice.constants import INVOICE_SETTLED_STATUSES
from src.modules.invoice.schemas import InvoiceLineInput, InvoiceRecipient
from src.modules.invoice.service import InvoiceService
from src.modules.settlement.calculator import (
    AdvanceCalculation,
    AreaTerms,
    FinalCalculation,
    LeaseParty,
    ParkTerms,
    PlotTerms,
    RevenuePhaseTerms,
    calculate_advance,
    calculate_final,
)
from src.modules.settlement.constants import (
    ADVANCE_INTERVAL_FACTOR,
    ADVANCE_MONTHS,
    EDITABLE_STATUSES,
    TERMINAL_STATUSES,
)
from src.modules.settlement.schemas import (
    SettlementPeriodBulkCreate,
    SettlementPeriodCreate,
    SettlementPeriodUpdate,
)
from src.modules.settlement.workflow import (
    action_for_status_update,
    apply_action,
    ensure_deletable,
)
from src.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class CalculationOutcome:
    period: SettlementPeriod
    park: Park
    calculation: AdvanceCalculation | FinalCalculation
    calculated_at: datetime
    saved: bool


@dataclass
class InvoicingOutcome:
    period: SettlementPeriod
    invoices: list[Invoice]
    skipped_zero_amount: int


# ---------------------------------------------------------------------------
# Model -> calculator input mapping
# ---------------------------------------------------------------------------


def park_terms_from_model(park: Park, active_turbine_count: int) -> ParkTerms:
    return ParkTerms(
        park_id=park.id,
        park_name=park.name,
        active_turbine_count=active_turbine_count,
        commissioning_year=park.commissioning_date.year if park.commissioning_date else None,
        minimum_rent_per_turbine=park.minimum_rent_per_turbine,
        turbine_site_share_percentage=park.turbine_site_share_percentage,
        pool_share_percentage=park.pool_share_percentage,
        access_road_rate_per_sqm=park.access_road_rate_per_sqm,
        compensation_area_rate_per_sqm=park.compensation_area_rate_per_sqm,
        cable_rate_per_m=park.cable_rate_per_m,
        revenue_phases=[
            RevenuePhaseTerms(
                phase_number=p.phase_number,
                start_year=p.start_year,
                end_year=p.end_year,
                revenue_share_percentage=p.revenue_share_percentage,
            )
            for p in park.revenue_phases
        ],
    )


def plot_terms_from_model(plot: Plot) -> PlotTerms:
    """Keep ANNUAL areas only and attach the plot's first ACTIVE lease, if any."""
    active_lease = next(
        (lease for lease in plot.leases if lease.status == LeaseStatus.ACTIVE), None
    )
    party = None
    if active_lease is not None:
        lessor = active_lease.lessor
        party = LeaseParty(
            lease_id=active_lease.id,
            lessor_id=active_lease.lessor_id,
            lessor_name=lessor.display_name if lessor is not None else "Unknown",
            lessor_address=lessor.formatted_address if lessor is not None else None,
        )
    return PlotTerms(
        plot_id=plot.id,
        plot_label=f"{plot.cadastral_district} {plot.field_number}/{plot.plot_number}",
        areas=[
            AreaTerms(
                area_id=a.id,
                area_type=a.area_type,
                area_sqm=a.area_sqm,
                length_m=a.length_m,
                compensation_fixed_amount=a.compensation_fixed_amount,
            )
            for a in plot.areas
            if a.compensation_type == CompensationType.ANNUAL
        ],
        lease=party,
    )


def service_period_for(period: SettlementPeriod) -> tuple[date, date]:
    """Date range an invoice for ``period`` covers.

    An ADVANCE period is billed at the end of its interval: month 6 of a
    QUARTERLY run covers April through June.
    """
    if period.period_type == SettlementPeriodType.FINAL or period.month is None:
        return date(period.year, 1, 1), date(period.year, 12, 31)
    span = ADVANCE_INTERVAL_FACTOR[period.advance_interval] if period.advance_interval else 1
    first_month = max(1, period.month - span + 1)
    last_day = calendar.monthrange(period.year, period.month)[1]
    return date(period.year, first_month, 1), date(period.year, period.month, last_day)


class SettlementService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Get / List
    # ------------------------------------------------------------------

    async def get_period(
        self,
        period_id: uuid.UUID,
        organization_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> SettlementPeriod:
        """Load a period of the tenant. Rows of other tenants are reported as not found."""
        stmt = select(SettlementPeriod).where(
            SettlementPeriod.id == period_id,
            SettlementPeriod.organization_id == organization_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundException(f"Settlement period {period_id} not found")
        return period

    async def list_periods(
        self,
        organization_id: uuid.UUID,
        park_id: uuid.UUID | None = None,
        year: int | None = None,
        status: SettlementPeriodStatus | None = None,
        period_type: SettlementPeriodType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SettlementPeriod], int]:
        filters = [SettlementPeriod.organization_id == organization_id]
        if park_id is not None:
            filters.append(SettlementPeriod.park_id == park_id)
        if year is not None:
            filters.append(SettlementPeriod.year == year)
        if status is not None:
            filters.append(SettlementPeriod.status == status)
        if period_type is not None:
            filters.append(SettlementPeriod.period_type == period_type)

        total_result = await self.db.execute(
            select(func.count()).select_from(SettlementPeriod).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(SettlementPeriod)
            .where(*filters)
            .order_by(
                SettlementPeriod.year.desc(),
                SettlementPeriod.month.desc().nulls_first(),
                SettlementPeriod.created_at.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_transitions(
        self, period_id: uuid.UUID, organization_id: uuid.UUID
    ) -> list[SettlementPeriodTransition]:
        await self.get_period(period_id, organization_id)
        result = await self.db.execute(
            select(SettlementPeriodTransition)
            .where(SettlementPeriodTransition.settlement_period_id == period_id)
            .order_by(SettlementPeriodTransition.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Create / Update / Delete
    # ------------------------------------------------------------------

    async def create_period(
        self,
        organization_id: uuid.UUID,
        data: SettlementPeriodCreate,
        created_by_id: uuid.UUID,
    ) -> SettlementPeriod:
        await self._get_park(data.park_id, organization_id)

        existing = await self.db.execute(
            select(SettlementPeriod.id).where(
                SettlementPeriod.organization_id == organization_id,
                SettlementPeriod.park_id == data.park_id,
                SettlementPeriod.year == data.year,
                SettlementPeriod.period_type == data.period_type,
                SettlementPeriod.month.is_(None)
                if data.month is None
                else SettlementPeriod.month == data.month,
            )
        )
        if existing.scalar_one_or_none() is not None:
            label = f"{data.month:02d}/{data.year}" if data.month else str(data.year)
            raise ConflictException(
                f"A {data.period_type.value} settlement period for {label} already exists for this park"
            )

        period = SettlementPeriod(
            organization_id=organization_id,
            park_id=data.park_id,
            year=data.year,
            month=data.month,
            period_type=data.period_type,
            advance_interval=data.advance_interval,
            status=SettlementPeriodStatus.OPEN,
            total_revenue=data.total_revenue,
            linked_energy_settlement_id=data.linked_energy_settlement_id,
            notes=data.notes,
            created_by_id=created_by_id,
        )
        self.db.add(period)
        await self.db.flush()
        logger.info(
            "Created %s settlement period %s for park %s (%s/%s)",
            data.period_type.value, period.id, data.park_id, data.month, data.year,
        )
        return period

    async def bulk_create(
        self,
        organization_id: uuid.UUID,
        data: SettlementPeriodBulkCreate,
        created_by_id: uuid.UUID,
    ) -> tuple[list[SettlementPeriod], int]:
        """Create the year's ADVANCE periods (and optionally FINAL), skipping existing ones."""
        await self._get_park(data.park_id, organization_id)

        existing_result = await self.db.execute(
            select(SettlementPeriod.period_type, SettlementPeriod.month).where(
                SettlementPeriod.organization_id == organization_id,
                SettlementPeriod.park_id == data.park_id,
                SettlementPeriod.year == data.year,
            )
        )
        existing = {(row[0], row[1]) for row in existing_result.all()}

        wanted: list[tuple[SettlementPeriodType, int | None]] = [
            (SettlementPeriodType.ADVANCE, month) for month in ADVANCE_MONTHS[data.advance_interval]
        ]
        if data.include_final:
            wanted.append((SettlementPeriodType.FINAL, None))

        created: list[SettlementPeriod] = []
        for period_type, month in wanted:
            if (period_type, month) in existing:
                continue
            period = SettlementPeriod(
                organization_id=organization_id,
                park_id=data.park_id,
                year=data.year,
                month=month,
                period_type=period_type,
                advance_interval=(
                    data.advance_interval if period_type == SettlementPeriodType.ADVANCE else None
                ),
                status=SettlementPeriodStatus.OPEN,
                created_by_id=created_by_id,
            )
            self.db.add(period)
            created.append(period)

        skipped = len(wanted) - len(created)
        if not created:
            raise ConflictException(
                f"All settlement periods for {data.year} already exist for this park"
            )
        await self.db.flush()
        logger.info(
            "Bulk-created %d settlement periods for park %s/%s (%d skipped)",
            len(created), data.park_id, data.year, skipped,
        )
        return created, skipped

    async def update_period(
        self,
        period_id: uuid.UUID,
        organization_id: uuid.UUID,
        data: SettlementPeriodUpdate,
        user_id: uuid.UUID,
    ) -> SettlementPeriod:
        """Apply field edits, then route a requested ``status`` through the workflow."""
        period = await self.get_period(period_id, organization_id, for_update=True)
        fields = data.model_dump(exclude_unset=True)
        target_status = fields.pop("status", None)
        review_notes = fields.pop("review_notes", None)
        if review_notes is not None and target_status is None:
            raise ValidationException(
                "Review notes are only accepted together with a status change",
                details=[{"field": "review_notes", "message": "requires status"}],
            )

        if period.status in TERMINAL_STATUSES and fields:
            raise BusinessRuleException("Closed settlement periods cannot be edited")
        if ("total_revenue" in fields or "linked_energy_settlement_id" in fields) and (
            period.status not in EDITABLE_STATUSES
        ):
            raise BusinessRuleException(
                f"Revenue can only be changed while the period is OPEN or IN_PROGRESS "
                f"(current: {period.status.value})"
            )
        for key, value in fields.items():
            setattr(period, key, value)

        if target_status is not None:
            action = action_for_status_update(target_status)
            await self.transition(period, action, triggered_by=user_id, reason=review_notes)
        else:
            await self.db.flush()
        return period

    async def delete_period(self, period_id: uuid.UUID, organization_id: uuid.UUID) -> None:
        period = await self.get_period(period_id, organization_id, for_update=True)
        ensure_deletable(period.status)
        await self.db.delete(period)
        await self.db.flush()
        logger.info("Deleted settlement period %s", period_id)

    # ------------------------------------------------------------------
    # State Machine
    # ------------------------------------------------------------------

    async def transition(
        self,
        period: SettlementPeriod,
        action: SettlementAction,
        triggered_by: uuid.UUID,
        reason: str | None = None,
        metadata: dict | None = None,
    ) -> SettlementPeriod:
        """Execute a workflow action on an already loaded (and locked) period.

        Validation happens before any attribute is touched, so a rejected
        action leaves the period exactly as it was.
        """
        now = datetime.now(UTC)
        result = apply_action(
            period.status,
            action,
            actor_id=triggered_by,
            now=now,
            notes=reason,
            calculated=period.calculated_at is not None,
        )

        period.status = result.to_status
        for key, value in result.updates.items():
            setattr(period, key, value)

        self.db.add(
            SettlementPeriodTransition(
                settlement_period_id=period.id,
                from_status=result.from_status,
                to_status=result.to_status,
                action=action,
                triggered_by=triggered_by,
                reason=reason.strip() if reason else None,
                metadata_extra=metadata or {},
            )
        )
        await self.db.flush()

        logger.info(
            "Settlement period %s transitioned %s -> %s via %s",
            period.id, result.from_status.value, result.to_status.value, action.value,
        )
        return period

    async def review(
        self,
        period_id: uuid.UUID,
        organization_id: uuid.UUID,
        approve: bool,
        user_id: uuid.UUID,
        notes: str | None = None,
    ) -> SettlementPeriod:
        period = await self.get_period(period_id, organization_id, for_update=True)
        action = SettlementAction.APPROVE if approve else SettlementAction.REJECT
        return await self.transition(period, action, triggered_by=user_id, reason=notes)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    async def calculate(
        self,
        period_id: uuid.UUID,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        total_revenue: Decimal | None = None,
        save_result: bool = True,
    ) -> CalculationOutcome:
        """Compute the period's lease payments; persist totals unless previewing.

        Saving is only allowed from OPEN or IN_PROGRESS and moves the period to
        IN_PROGRESS. A preview (``save_result=False``) works in any status and
        writes nothing.
        """
        period = await self.get_period(period_id, organization_id, for_update=save_result)
        if save_result:
            # Fail fast on an illegal state before doing any work
            apply_action(
                period.status,
                SettlementAction.CALCULATE,
                actor_id=user_id,
                now=datetime.now(UTC),
            )

        park = await self._get_park(period.park_id, organization_id)
        revenue = self._resolve_revenue(period, total_revenue)
        calculation = await self._compute(period, park, revenue)
        calculated_at = datetime.now(UTC)

        if save_result:
            if isinstance(calculation, FinalCalculation):
                totals = calculation.totals
                period.total_revenue = totals.total_revenue
                period.total_minimum_rent = totals.total_minimum_rent
                period.total_actual_rent = totals.total_final_payment + totals.total_advances_paid
                metadata = {
                    "lease_count": totals.lease_count,
                    "total_final_payment": str(totals.total_final_payment),
                }
            else:
                period.total_minimum_rent = calculation.totals.total_monthly_minimum_rent
                metadata = {
                    "lease_count": calculation.totals.lease_count,
                    "total_monthly_minimum_rent": str(
                        calculation.totals.total_monthly_minimum_rent
                    ),
                }
            await self.transition(
                period, SettlementAction.CALCULATE, triggered_by=user_id, metadata=metadata
            )
            calculated_at = period.calculated_at or calculated_at

        return CalculationOutcome(
            period=period,
            park=park,
            calculation=calculation,
            calculated_at=calculated_at,
            saved=save_result,
        )

    @staticmethod
    def _resolve_revenue(period: SettlementPeriod, override: Decimal | None) -> Decimal:
        if override is not None:
            return to_decimal(override)
        if period.total_revenue is not None:
            return to_decimal(period.total_revenue)
        return ZERO

    async def _compute(
        self, period: SettlementPeriod, park: Park, revenue: Decimal
    ) -> AdvanceCalculation | FinalCalculation:
        turbine_count = await self._count_active_turbines(park.id)
        terms = park_terms_from_model(park, turbine_count)
        plots = await self._load_plots(park.id, period.organization_id)

        if period.period_type == SettlementPeriodType.ADVANCE:
            return calculate_advance(terms, plots, period.advance_interval)

        advances = await self._load_advances_paid(period.organization_id, park.id, period.year)
        return calculate_final(terms, plots, period.year, revenue, advances)

    # ------------------------------------------------------------------
    # Invoicing
    # ------------------------------------------------------------------

    async def create_invoices(
        self,
        period_id: uuid.UUID,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> InvoicingOutcome:
        """Create one DRAFT document per lease with a non-zero amount.

        Payments to lessors become credit notes, refunds owed by a lessor after
        a FINAL settlement become invoices. All positions are tax exempt.
        """
        period = await self.get_period(period_id, organization_id, for_update=True)
        apply_action(
            period.status,
            SettlementAction.CREATE_INVOICES,
            actor_id=user_id,
            now=datetime.now(UTC),
        )

        invoice_svc = InvoiceService(self.db)
        if await invoice_svc.count_open_for_settlement_period(period.id) > 0:
            raise ConflictException(
                "Invoices already exist for this settlement period; cancel them before recreating"
            )

        park = await self._get_park(period.park_id, organization_id)
        calculation = await self._compute(period, park, self._resolve_revenue(period, None))
        start, end = service_period_for(period)

        invoices: list[Invoice] = []
        skipped = 0
        for lease in calculation.leases:
            if isinstance(calculation, FinalCalculation):
                amount = lease.final_payment
                description = f"Final lease settlement {park.name} {period.year}"
            else:
                amount = lease.monthly_minimum_rent
                description = f"Lease advance {park.name} {period.month:02d}/{period.year}"

            if amount == ZERO:
                skipped += 1
                continue

            invoice_type = InvoiceType.CREDIT_NOTE if amount > ZERO else InvoiceType.INVOICE
            invoice = await invoice_svc.create_invoice(
                organization_id,
                [
                    InvoiceLineInput(
                        description=description,
                        quantity=Decimal(1),
                        unit_price=abs(amount),
                        tax_type=TaxType.EXEMPT,
                        unit="flat",
                    )
                ],
                invoice_type=invoice_type,
                recipient=InvoiceRecipient(
                    recipient_type=RecipientType.LESSOR,
                    recipient_id=lease.lessor_id,
                    recipient_name=lease.lessor_name,
                    recipient_address=lease.lessor_address,
                ),
                service_period_start=start,
                service_period_end=end,
                park_id=park.id,
                lease_id=lease.lease_id,
                settlement_period_id=period.id,
                created_by_id=user_id,
            )
            invoices.append(invoice)

        await self.transition(
            period,
            SettlementAction.CREATE_INVOICES,
            triggered_by=user_id,
            metadata={"invoice_count": len(invoices), "skipped_zero_amount": skipped},
        )
        return InvoicingOutcome(period=period, invoices=invoices, skipped_zero_amount=skipped)

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    async def _get_park(self, park_id: uuid.UUID, organization_id: uuid.UUID) -> Park:
        result = await self.db.execute(
            select(Park)
            .options(selectinload(Park.revenue_phases))
            .where(Park.id == park_id, Park.organization_id == organization_id)
        )
        park = result.scalar_one_or_none()
        if park is None:
            raise NotFoundException(f"Park {park_id} not found")
        return park

    async def _count_active_turbines(self, park_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Turbine)
            .where(Turbine.park_id == park_id, Turbine.status == TurbineStatus.ACTIVE)
        )
        return result.scalar() or 0

    async def _load_plots(self, park_id: uuid.UUID, organization_id: uuid.UUID) -> list[PlotTerms]:
        result = await self.db.execute(
            select(Plot)
            .options(
                selectinload(Plot.areas),
                selectinload(Plot.leases).selectinload(Lease.lessor),
            )
            .where(
                Plot.park_id == park_id,
                Plot.organization_id == organization_id,
                Plot.status == PlotStatus.ACTIVE,
            )
            .order_by(Plot.cadastral_district, Plot.field_number, Plot.plot_number)
        )
        return [plot_terms_from_model(plot) for plot in result.scalars().all()]

    async def _load_advances_paid(
        self, organization_id: uuid.UUID, park_id: uuid.UUID, year: int
    ) -> dict[uuid.UUID, Decimal]:
        """Gross amounts of sent or paid ADVANCE invoices of the park/year, per lease."""
        result = await self.db.execute(
            select(Invoice.lease_id, func.sum(Invoice.gross_amount))
            .join(SettlementPeriod, Invoice.settlement_period_id == SettlementPeriod.id)
            .where(
                SettlementPeriod.organization_id == organization_id,
                SettlementPeriod.park_id == park_id,
                SettlementPeriod.year == year,
                SettlementPeriod.period_type == SettlementPeriodType.ADVANCE,
                Invoice.status.in_(INVOICE_SETTLED_STATUSES),
                Invoice.lease_id.is_not(None),
            )
            .group_by(Invoice.lease_id)
        )
        return {lease_id: to_decimal(amount) for lease_id, amount in result.all()}
