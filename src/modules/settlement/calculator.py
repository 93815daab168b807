"""Lease rent calculation for settlement periods.

Pure functions over plain dataclasses: the service loads park terms, plots and
already-paid advances from the database and hands them in; nothing here does
I/O. Amounts are Decimal throughout and rounded to cents per lease, so totals
are the sum of the rounded lease figures and recalculation on unchanged data
is reproducible.

Distribution rules:

* The yearly minimum rent base is ``minimum_rent_per_turbine x active turbines``.
* ``turbine_site_share_percentage`` of it goes to TURBINE_SITE areas in
  proportion to their m^2, or split equally by count when no area carries m^2.
* ``pool_share_percentage`` goes to POOL areas in proportion to their m^2.
* ACCESS_ROAD and COMPENSATION_AREA earn ``area_sqm x rate``, CABLE_ROUTE earns
  ``length_m x rate``. A fixed compensation amount on an area overrides its
  computed amount.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from src.models.enums import AdvanceInterval, PlotAreaType
from src.modules.settlement.constants import (
    ADVANCE_INTERVAL_FACTOR,
    DEFAULT_POOL_SHARE_PERCENTAGE,
    DEFAULT_TURBINE_SITE_SHARE_PERCENTAGE,
)
from src.money import ZERO, round_money, to_decimal

HUNDRED = Decimal(100)
MONTHS_PER_YEAR = Decimal(12)

SPECIAL_AREA_TYPES = {
    PlotAreaType.ACCESS_ROAD,
    PlotAreaType.COMPENSATION_AREA,
    PlotAreaType.CABLE_ROUTE,
}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass
class RevenuePhaseTerms:
    phase_number: int
    start_year: int
    end_year: int | None
    revenue_share_percentage: Decimal


@dataclass
class ParkTerms:
    park_id: uuid.UUID
    park_name: str
    active_turbine_count: int
    commissioning_year: int | None = None
    minimum_rent_per_turbine: Decimal | None = None
    turbine_site_share_percentage: Decimal | None = None
    pool_share_percentage: Decimal | None = None
    access_road_rate_per_sqm: Decimal | None = None
    compensation_area_rate_per_sqm: Decimal | None = None
    cable_rate_per_m: Decimal | None = None
    revenue_phases: list[RevenuePhaseTerms] = field(default_factory=list)

    @property
    def turbine_site_share(self) -> Decimal:
        if self.turbine_site_share_percentage is None:
            return DEFAULT_TURBINE_SITE_SHARE_PERCENTAGE
        return to_decimal(self.turbine_site_share_percentage)

    @property
    def pool_share(self) -> Decimal:
        if self.pool_share_percentage is None:
            return DEFAULT_POOL_SHARE_PERCENTAGE
        return to_decimal(self.pool_share_percentage)


@dataclass
class LeaseParty:
    """The active lease on a plot and who gets paid for it."""

    lease_id: uuid.UUID
    lessor_id: uuid.UUID
    lessor_name: str
    lessor_address: str | None = None


@dataclass
class AreaTerms:
    area_id: uuid.UUID
    area_type: PlotAreaType
    area_sqm: Decimal | None = None
    length_m: Decimal | None = None
    compensation_fixed_amount: Decimal | None = None


@dataclass
class PlotTerms:
    """An ACTIVE plot with its ANNUAL areas; ``lease`` is None if no lease is active."""

    plot_id: uuid.UUID
    plot_label: str
    areas: list[AreaTerms] = field(default_factory=list)
    lease: LeaseParty | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass
class AdvanceLeaseResult:
    lease_id: uuid.UUID
    lessor_id: uuid.UUID
    lessor_name: str
    lessor_address: str | None
    plot_count: int
    turbine_site_share: Decimal
    pool_share: Decimal
    special_compensation: Decimal
    monthly_minimum_rent: Decimal


@dataclass
class AdvanceTotals:
    lease_count: int
    total_monthly_minimum_rent: Decimal
    yearly_minimum_rent_base: Decimal


@dataclass
class AdvanceCalculation:
    advance_interval: AdvanceInterval
    leases: list[AdvanceLeaseResult]
    totals: AdvanceTotals


@dataclass
class AreaPayment:
    area_id: uuid.UUID
    plot_id: uuid.UUID
    plot_label: str
    area_type: PlotAreaType
    ratio: Decimal
    minimum_rent: Decimal
    revenue_share: Decimal
    amount: Decimal


@dataclass
class FinalLeaseResult:
    lease_id: uuid.UUID
    lessor_id: uuid.UUID
    lessor_name: str
    lessor_address: str | None
    plot_count: int
    total_minimum_rent: Decimal
    total_revenue_share: Decimal
    total_payment: Decimal
    advances_paid: Decimal
    final_payment: Decimal
    areas: list[AreaPayment] = field(default_factory=list)

    @property
    def is_credit(self) -> bool:
        """True when the operator owes the lessor money."""
        return self.final_payment > ZERO


@dataclass
class FinalTotals:
    lease_count: int
    total_revenue: Decimal
    years_in_operation: int
    revenue_share_percentage: Decimal | None
    revenue_per_turbine: Decimal
    payment_per_turbine: Decimal
    total_minimum_rent: Decimal
    total_revenue_share: Decimal
    total_payment: Decimal
    total_advances_paid: Decimal
    total_final_payment: Decimal


@dataclass
class FinalCalculation:
    leases: list[FinalLeaseResult]
    totals: FinalTotals


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _positive(value: Decimal | None) -> Decimal:
    amount = to_decimal(value)
    return amount if amount > ZERO else ZERO


def _site_ratio(area: AreaTerms, total_site_sqm: Decimal, site_count: int) -> Decimal:
    sqm = _positive(area.area_sqm)
    if sqm > ZERO and total_site_sqm > ZERO:
        return sqm / total_site_sqm
    if site_count > 0:
        return Decimal(1) / Decimal(site_count)
    return ZERO


def _pool_ratio(area: AreaTerms, total_pool_sqm: Decimal) -> Decimal:
    sqm = _positive(area.area_sqm)
    if sqm > ZERO and total_pool_sqm > ZERO:
        return sqm / total_pool_sqm
    return ZERO


def _special_area_amount(area: AreaTerms, terms: ParkTerms) -> Decimal:
    """Yearly compensation for a road, compensation or cable area."""
    if area.compensation_fixed_amount is not None:
        return to_decimal(area.compensation_fixed_amount)
    if area.area_type == PlotAreaType.ACCESS_ROAD:
        return _positive(area.area_sqm) * to_decimal(terms.access_road_rate_per_sqm)
    if area.area_type == PlotAreaType.COMPENSATION_AREA:
        return _positive(area.area_sqm) * to_decimal(terms.compensation_area_rate_per_sqm)
    if area.area_type == PlotAreaType.CABLE_ROUTE:
        return _positive(area.length_m) * to_decimal(terms.cable_rate_per_m)
    return ZERO


@dataclass
class _AreaTotals:
    site_sqm: Decimal = ZERO
    site_count: int = 0
    pool_sqm: Decimal = ZERO


def _area_totals(plots: Iterable[PlotTerms]) -> _AreaTotals:
    """Park-wide site and pool totals, over all active plots whether leased or not."""
    totals = _AreaTotals()
    for plot in plots:
        for area in plot.areas:
            if area.area_type == PlotAreaType.TURBINE_SITE:
                totals.site_sqm += _positive(area.area_sqm)
                totals.site_count += 1
            elif area.area_type == PlotAreaType.POOL:
                totals.pool_sqm += _positive(area.area_sqm)
    return totals


def find_revenue_phase(
    phases: Iterable[RevenuePhaseTerms], years_in_operation: int
) -> RevenuePhaseTerms | None:
    for phase in sorted(phases, key=lambda p: p.phase_number):
        if phase.start_year <= years_in_operation and (
            phase.end_year is None or years_in_operation <= phase.end_year
        ):
            return phase
    return None


def years_in_operation(year: int, commissioning_year: int | None) -> int:
    """1-based operating year; parks without a commissioning date count as year 1."""
    if commissioning_year is None:
        return 1
    return year - commissioning_year + 1


# ---------------------------------------------------------------------------
# ADVANCE
# ---------------------------------------------------------------------------


def calculate_advance(
    terms: ParkTerms,
    plots: list[PlotTerms],
    advance_interval: AdvanceInterval | None = None,
) -> AdvanceCalculation:
    """Monthly minimum-rent advance per lease, scaled to the billing interval."""
    interval = advance_interval or AdvanceInterval.MONTHLY
    factor = Decimal(ADVANCE_INTERVAL_FACTOR[interval])

    yearly_base = to_decimal(terms.minimum_rent_per_turbine) * terms.active_turbine_count
    yearly_site = yearly_base * terms.turbine_site_share / HUNDRED
    yearly_pool = yearly_base * terms.pool_share / HUNDRED
    area_totals = _area_totals(plots)

    # lease_id -> [party, plot ids, site, pool, special]
    accumulated: dict[uuid.UUID, dict] = {}
    for plot in plots:
        if plot.lease is None:
            continue
        entry = accumulated.setdefault(
            plot.lease.lease_id,
            {"party": plot.lease, "plots": set(), "site": ZERO, "pool": ZERO, "special": ZERO},
        )
        entry["plots"].add(plot.plot_id)
        for area in plot.areas:
            if area.area_type == PlotAreaType.TURBINE_SITE:
                ratio = _site_ratio(area, area_totals.site_sqm, area_totals.site_count)
                entry["site"] += yearly_site * ratio / MONTHS_PER_YEAR
            elif area.area_type == PlotAreaType.POOL:
                ratio = _pool_ratio(area, area_totals.pool_sqm)
                entry["pool"] += yearly_pool * ratio / MONTHS_PER_YEAR
            elif area.area_type in SPECIAL_AREA_TYPES:
                entry["special"] += _special_area_amount(area, terms) / MONTHS_PER_YEAR

    leases: list[AdvanceLeaseResult] = []
    for entry in accumulated.values():
        party: LeaseParty = entry["party"]
        monthly = entry["site"] + entry["pool"] + entry["special"]
        leases.append(
            AdvanceLeaseResult(
                lease_id=party.lease_id,
                lessor_id=party.lessor_id,
                lessor_name=party.lessor_name,
                lessor_address=party.lessor_address,
                plot_count=len(entry["plots"]),
                turbine_site_share=round_money(entry["site"] * factor),
                pool_share=round_money(entry["pool"] * factor),
                special_compensation=round_money(entry["special"] * factor),
                monthly_minimum_rent=round_money(monthly * factor),
            )
        )
    leases.sort(key=lambda r: (r.lessor_name, str(r.lease_id)))

    return AdvanceCalculation(
        advance_interval=interval,
        leases=leases,
        totals=AdvanceTotals(
            lease_count=len(leases),
            total_monthly_minimum_rent=sum((r.monthly_minimum_rent for r in leases), ZERO),
            yearly_minimum_rent_base=round_money(yearly_base),
        ),
    )


# ---------------------------------------------------------------------------
# FINAL
# ---------------------------------------------------------------------------


def calculate_final(
    terms: ParkTerms,
    plots: list[PlotTerms],
    year: int,
    total_revenue: Decimal,
    advances_paid: dict[uuid.UUID, Decimal] | None = None,
) -> FinalCalculation:
    """Annual settlement: revenue share vs. minimum rent, less advances already paid.

    ``final_payment`` is signed: positive means the lessor is owed money,
    negative means the lessor was overpaid through advances.
    """
    advances_paid = advances_paid or {}
    revenue = to_decimal(total_revenue)
    turbines = terms.active_turbine_count
    operating_year = years_in_operation(year, terms.commissioning_year)
    phase = find_revenue_phase(terms.revenue_phases, operating_year)
    phase_pct = to_decimal(phase.revenue_share_percentage) if phase else None

    if revenue > ZERO and phase_pct is not None and turbines > 0:
        revenue_per_turbine = revenue * phase_pct / HUNDRED / turbines
    else:
        revenue_per_turbine = ZERO

    min_rent = terms.minimum_rent_per_turbine
    if min_rent is not None:
        payment_per_turbine = max(revenue_per_turbine, to_decimal(min_rent))
    else:
        payment_per_turbine = revenue_per_turbine
    min_rent_per_turbine = to_decimal(min_rent)

    area_totals = _area_totals(plots)
    site_pct = terms.turbine_site_share / HUNDRED
    pool_pct = terms.pool_share / HUNDRED

    accumulated: dict[uuid.UUID, dict] = {}
    for plot in plots:
        if plot.lease is None:
            continue
        entry = accumulated.setdefault(
            plot.lease.lease_id,
            {"party": plot.lease, "plots": set(), "areas": []},
        )
        entry["plots"].add(plot.plot_id)
        for area in plot.areas:
            if area.area_type == PlotAreaType.TURBINE_SITE:
                ratio = _site_ratio(area, area_totals.site_sqm, area_totals.site_count)
                share = site_pct * turbines * ratio
            elif area.area_type == PlotAreaType.POOL:
                ratio = _pool_ratio(area, area_totals.pool_sqm)
                share = pool_pct * turbines * ratio
            elif area.area_type in SPECIAL_AREA_TYPES:
                amount = round_money(_special_area_amount(area, terms))
                fixed = area.compensation_fixed_amount is not None
                entry["areas"].append(
                    AreaPayment(
                        area_id=area.area_id,
                        plot_id=plot.plot_id,
                        plot_label=plot.plot_label,
                        area_type=area.area_type,
                        ratio=ZERO,
                        minimum_rent=amount if fixed else ZERO,
                        revenue_share=ZERO,
                        amount=amount,
                    )
                )
                continue
            else:
                continue

            if area.compensation_fixed_amount is not None:
                fixed_amount = round_money(to_decimal(area.compensation_fixed_amount))
                minimum, revenue_share, amount = fixed_amount, ZERO, fixed_amount
            else:
                minimum = round_money(min_rent_per_turbine * share)
                revenue_share = round_money(revenue_per_turbine * share)
                amount = round_money(payment_per_turbine * share)
            entry["areas"].append(
                AreaPayment(
                    area_id=area.area_id,
                    plot_id=plot.plot_id,
                    plot_label=plot.plot_label,
                    area_type=area.area_type,
                    ratio=ratio.quantize(Decimal("0.000001")),
                    minimum_rent=minimum,
                    revenue_share=revenue_share,
                    amount=amount,
                )
            )

    leases: list[FinalLeaseResult] = []
    for entry in accumulated.values():
        party: LeaseParty = entry["party"]
        areas: list[AreaPayment] = entry["areas"]
        total_payment = sum((a.amount for a in areas), ZERO)
        paid = round_money(to_decimal(advances_paid.get(party.lease_id)))
        leases.append(
            FinalLeaseResult(
                lease_id=party.lease_id,
                lessor_id=party.lessor_id,
                lessor_name=party.lessor_name,
                lessor_address=party.lessor_address,
                plot_count=len(entry["plots"]),
                total_minimum_rent=sum((a.minimum_rent for a in areas), ZERO),
                total_revenue_share=sum((a.revenue_share for a in areas), ZERO),
                total_payment=total_payment,
                advances_paid=paid,
                final_payment=round_money(total_payment - paid),
                areas=areas,
            )
        )
    leases.sort(key=lambda r: (r.lessor_name, str(r.lease_id)))

    return FinalCalculation(
        leases=leases,
        totals=FinalTotals(
            lease_count=len(leases),
            total_revenue=round_money(revenue),
            years_in_operation=operating_year,
            revenue_share_percentage=phase_pct,
            revenue_per_turbine=round_money(revenue_per_turbine),
            payment_per_turbine=round_money(payment_per_turbine),
            total_minimum_rent=sum((r.total_minimum_rent for r in leases), ZERO),
            total_revenue_share=sum((r.total_revenue_share for r in leases), ZERO),
            total_payment=sum((r.total_payment for r in leases), ZERO),
            total_advances_paid=sum((r.advances_paid for r in leases), ZERO),
            total_final_payment=sum((r.final_payment for r in leases), ZERO),
        ),
    )
