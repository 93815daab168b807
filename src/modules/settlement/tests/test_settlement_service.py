"""Tests for SettlementService: loading, workflow transitions, calculation, invoicing."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from src.models.enums import (
    AdvanceInterval,
    CompensationType,
    InvoiceType,
    LeaseStatus,
    PlotAreaType,
    RecipientType,
    SettlementAction,
    SettlementPeriodStatus,
    SettlementPeriodType,
    TaxType,
)
from src.models.lease import Lease, Lessor
from src.models.park import Park, ParkRevenuePhase
from src.models.plot import Plot, PlotArea
from src.models.settlement_period import SettlementPeriod
from src.models.settlement_period_transition import SettlementPeriodTransition
from src.modules.settlement.schemas import (
    SettlementPeriodBulkCreate,
    SettlementPeriodCreate,
    SettlementPeriodUpdate,
)
from src.modules.settlement.service import SettlementService, service_period_for

ORG_ID = uuid.uuid4()
PARK_ID = uuid.uuid4()
USER_ID = uuid.uuid4()
LEASE_A = uuid.uuid4()
LEASE_B = uuid.uuid4()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _make_period(
    status: SettlementPeriodStatus = SettlementPeriodStatus.OPEN,
    period_type: SettlementPeriodType = SettlementPeriodType.FINAL,
    month: int | None = None,
    advance_interval: AdvanceInterval | None = None,
    calculated_at: datetime | None = None,
    total_revenue: Decimal | None = None,
) -> MagicMock:
    period = MagicMock(spec=SettlementPeriod)
    period.id = uuid.uuid4()
    period.organization_id = ORG_ID
    period.park_id = PARK_ID
    period.year = 2025
    period.month = month
    period.period_type = period_type
    period.advance_interval = advance_interval
    period.status = status
    period.calculated_at = calculated_at
    period.total_revenue = total_revenue
    period.total_minimum_rent = None
    period.total_actual_rent = None
    period.reviewed_by_id = None
    period.reviewed_at = None
    period.review_notes = None
    period.closed_at = None
    return period


def _make_park() -> MagicMock:
    phase = MagicMock(spec=ParkRevenuePhase)
    phase.phase_number = 1
    phase.start_year = 1
    phase.end_year = None
    phase.revenue_share_percentage = Decimal("8")

    park = MagicMock(spec=Park)
    park.id = PARK_ID
    park.name = "Windpark Nordfeld"
    park.commissioning_date = date(2020, 6, 1)
    park.minimum_rent_per_turbine = Decimal("10000")
    park.turbine_site_share_percentage = None
    park.pool_share_percentage = None
    park.access_road_rate_per_sqm = None
    park.compensation_area_rate_per_sqm = None
    park.cable_rate_per_m = None
    park.revenue_phases = [phase]
    return park


def _make_area(area_type: PlotAreaType, sqm: str) -> MagicMock:
    area = MagicMock(spec=PlotArea)
    area.id = uuid.uuid4()
    area.area_type = area_type
    area.area_sqm = Decimal(sqm)
    area.length_m = None
    area.compensation_type = CompensationType.ANNUAL
    area.compensation_fixed_amount = None
    return area


def _make_plot(lease_id: uuid.UUID, lessor_name: str, site_sqm: str, pool_sqm: str) -> MagicMock:
    lessor = MagicMock(spec=Lessor)
    lessor.display_name = lessor_name
    lessor.formatted_address = "Dorfstr. 1, 25899 Niebüll"

    lease = MagicMock(spec=Lease)
    lease.id = lease_id
    lease.lessor_id = uuid.uuid4()
    lease.status = LeaseStatus.ACTIVE
    lease.lessor = lessor

    plot = MagicMock(spec=Plot)
    plot.id = uuid.uuid4()
    plot.cadastral_district = "Nordfeld"
    plot.field_number = "1"
    plot.plot_number = "12"
    plot.areas = [
        _make_area(PlotAreaType.TURBINE_SITE, site_sqm),
        _make_area(PlotAreaType.POOL, pool_sqm),
    ]
    plot.leases = [lease]
    return plot


# ---------------------------------------------------------------------------
# Result mocks
# ---------------------------------------------------------------------------


def _scalar_one_or_none(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _scalar(value):
    result = MagicMock()
    result.scalar.return_value = value
    return result


def _scalars_all(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _rows(rows):
    result = MagicMock()
    result.all.return_value = rows
    return result


def _make_db(*results) -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    db.execute.side_effect = list(results)
    return db


def _added_transitions(db) -> list[SettlementPeriodTransition]:
    return [
        call.args[0]
        for call in db.add.call_args_list
        if isinstance(call.args[0], SettlementPeriodTransition)
    ]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestGetPeriod:
    @pytest.mark.asyncio
    async def test_other_tenant_is_not_found(self) -> None:
        db = _make_db(_scalar_one_or_none(None))
        svc = SettlementService(db)
        with pytest.raises(NotFoundException):
            await svc.get_period(uuid.uuid4(), ORG_ID)


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_open_period(self) -> None:
        db = _make_db(_scalar_one_or_none(_make_park()), _scalar_one_or_none(None))
        svc = SettlementService(db)

        data = SettlementPeriodCreate(
            park_id=PARK_ID, year=2025, month=3, period_type=SettlementPeriodType.ADVANCE
        )
        period = await svc.create_period(ORG_ID, data, created_by_id=USER_ID)

        assert period.status == SettlementPeriodStatus.OPEN
        assert period.advance_interval == AdvanceInterval.MONTHLY
        assert period.created_by_id == USER_ID
        db.add.assert_called_once_with(period)

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self) -> None:
        db = _make_db(_scalar_one_or_none(_make_park()), _scalar_one_or_none(uuid.uuid4()))
        svc = SettlementService(db)

        with pytest.raises(ConflictException, match="already exists"):
            await svc.create_period(
                ORG_ID, SettlementPeriodCreate(park_id=PARK_ID, year=2025), created_by_id=USER_ID
            )
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_park_is_not_found(self) -> None:
        db = _make_db(_scalar_one_or_none(None))
        svc = SettlementService(db)
        with pytest.raises(NotFoundException, match="Park"):
            await svc.create_period(
                ORG_ID, SettlementPeriodCreate(park_id=PARK_ID, year=2025), created_by_id=USER_ID
            )


class TestBulkCreate:
    @pytest.mark.asyncio
    async def test_quarterly_skips_existing(self) -> None:
        db = _make_db(
            _scalar_one_or_none(_make_park()),
            _rows([(SettlementPeriodType.ADVANCE, 3)]),
        )
        svc = SettlementService(db)

        created, skipped = await svc.bulk_create(
            ORG_ID,
            SettlementPeriodBulkCreate(
                park_id=PARK_ID, year=2025, advance_interval=AdvanceInterval.QUARTERLY
            ),
            created_by_id=USER_ID,
        )

        assert [(p.period_type, p.month) for p in created] == [
            (SettlementPeriodType.ADVANCE, 6),
            (SettlementPeriodType.ADVANCE, 9),
            (SettlementPeriodType.ADVANCE, 12),
            (SettlementPeriodType.FINAL, None),
        ]
        assert skipped == 1
        assert created[-1].advance_interval is None

    @pytest.mark.asyncio
    async def test_nothing_left_is_conflict(self) -> None:
        existing = [(SettlementPeriodType.ADVANCE, 12), (SettlementPeriodType.FINAL, None)]
        db = _make_db(_scalar_one_or_none(_make_park()), _rows(existing))
        svc = SettlementService(db)

        with pytest.raises(ConflictException):
            await svc.bulk_create(
                ORG_ID,
                SettlementPeriodBulkCreate(
                    park_id=PARK_ID, year=2025, advance_interval=AdvanceInterval.YEARLY
                ),
                created_by_id=USER_ID,
            )


class TestTransitions:
    @pytest.mark.asyncio
    async def test_reject_without_notes_leaves_period_untouched(self) -> None:
        period = _make_period(
            status=SettlementPeriodStatus.PENDING_REVIEW, calculated_at=datetime.now(UTC)
        )
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(BusinessRuleException):
            await svc.review(period.id, ORG_ID, approve=False, user_id=USER_ID, notes="   ")

        assert period.status == SettlementPeriodStatus.PENDING_REVIEW
        assert period.reviewed_by_id is None
        assert period.review_notes is None
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_records_reviewer_and_audit_row(self) -> None:
        period = _make_period(
            status=SettlementPeriodStatus.PENDING_REVIEW, calculated_at=datetime.now(UTC)
        )
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        await svc.review(period.id, ORG_ID, approve=True, user_id=USER_ID)

        assert period.status == SettlementPeriodStatus.APPROVED
        assert period.reviewed_by_id == USER_ID
        transitions = _added_transitions(db)
        assert len(transitions) == 1
        assert transitions[0].from_status == SettlementPeriodStatus.PENDING_REVIEW
        assert transitions[0].to_status == SettlementPeriodStatus.APPROVED
        assert transitions[0].action == SettlementAction.APPROVE

    @pytest.mark.asyncio
    async def test_status_update_routes_through_workflow(self) -> None:
        period = _make_period(
            status=SettlementPeriodStatus.IN_PROGRESS, calculated_at=datetime.now(UTC)
        )
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        await svc.update_period(
            period.id,
            ORG_ID,
            SettlementPeriodUpdate(status=SettlementPeriodStatus.PENDING_REVIEW),
            user_id=USER_ID,
        )
        assert period.status == SettlementPeriodStatus.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_status_update_cannot_skip_review(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.IN_PROGRESS)
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(BusinessRuleException):
            await svc.update_period(
                period.id,
                ORG_ID,
                SettlementPeriodUpdate(status=SettlementPeriodStatus.CLOSED),
                user_id=USER_ID,
            )
        assert period.status == SettlementPeriodStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_review_notes_without_status_rejected(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.PENDING_REVIEW)
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(ValidationException):
            await svc.update_period(
                period.id,
                ORG_ID,
                SettlementPeriodUpdate(review_notes="Pool areas are outdated"),
                user_id=USER_ID,
            )
        assert period.status == SettlementPeriodStatus.PENDING_REVIEW
        db.flush.assert_not_called()

    @pytest.mark.asyncio
    async def test_revenue_is_frozen_after_review(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.APPROVED)
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(BusinessRuleException, match="Revenue"):
            await svc.update_period(
                period.id,
                ORG_ID,
                SettlementPeriodUpdate(total_revenue=Decimal("1")),
                user_id=USER_ID,
            )
        assert period.total_revenue is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_open_period_is_deleted(self) -> None:
        period = _make_period()
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        await svc.delete_period(period.id, ORG_ID)
        db.delete.assert_awaited_once_with(period)

    @pytest.mark.asyncio
    async def test_non_open_period_is_kept(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.IN_PROGRESS)
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(BusinessRuleException, match="Only OPEN"):
            await svc.delete_period(period.id, ORG_ID)
        db.delete.assert_not_called()


class TestCalculate:
    @pytest.mark.asyncio
    async def test_final_persists_totals_and_moves_to_in_progress(self) -> None:
        period = _make_period()
        plot = _make_plot(LEASE_A, "Anna Becker", "1000", "1000")
        db = _make_db(
            _scalar_one_or_none(period),
            _scalar_one_or_none(_make_park()),
            _scalar(2),
            _scalars_all([plot]),
            _rows([]),
        )
        svc = SettlementService(db)

        outcome = await svc.calculate(
            period.id, ORG_ID, user_id=USER_ID, total_revenue=Decimal("600000")
        )

        assert outcome.saved is True
        assert period.status == SettlementPeriodStatus.IN_PROGRESS
        assert period.calculated_at is not None
        assert period.total_revenue == Decimal("600000.00")
        assert period.total_minimum_rent == Decimal("20000.00")
        assert period.total_actual_rent == Decimal("48000.00")
        assert outcome.calculation.totals.total_final_payment == Decimal("48000.00")
        assert _added_transitions(db)[0].action == SettlementAction.CALCULATE

    @pytest.mark.asyncio
    async def test_advance_uses_minimum_rent(self) -> None:
        period = _make_period(
            period_type=SettlementPeriodType.ADVANCE,
            month=3,
            advance_interval=AdvanceInterval.MONTHLY,
        )
        plot = _make_plot(LEASE_A, "Anna Becker", "1000", "1000")
        db = _make_db(
            _scalar_one_or_none(period),
            _scalar_one_or_none(_make_park()),
            _scalar(2),
            _scalars_all([plot]),
        )
        svc = SettlementService(db)

        outcome = await svc.calculate(period.id, ORG_ID, user_id=USER_ID)

        assert period.total_minimum_rent == Decimal("1666.67")
        assert outcome.calculation.leases[0].monthly_minimum_rent == Decimal("1666.67")
        assert db.execute.await_count == 4

    @pytest.mark.asyncio
    async def test_saving_from_review_is_rejected_before_any_work(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.PENDING_REVIEW)
        db = _make_db(_scalar_one_or_none(period))
        svc = SettlementService(db)

        with pytest.raises(BusinessRuleException, match="CALCULATE"):
            await svc.calculate(period.id, ORG_ID, user_id=USER_ID)
        assert period.status == SettlementPeriodStatus.PENDING_REVIEW
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.APPROVED, total_revenue=Decimal("0"))
        db = _make_db(
            _scalar_one_or_none(period),
            _scalar_one_or_none(_make_park()),
            _scalar(2),
            _scalars_all([]),
            _rows([]),
        )
        svc = SettlementService(db)

        outcome = await svc.calculate(period.id, ORG_ID, user_id=USER_ID, save_result=False)

        assert outcome.saved is False
        assert outcome.calculation.leases == []
        assert period.status == SettlementPeriodStatus.APPROVED
        assert period.total_minimum_rent is None
        db.add.assert_not_called()

    def test_revenue_resolution_order(self) -> None:
        stored = _make_period(total_revenue=Decimal("5"))
        empty = _make_period()
        assert SettlementService._resolve_revenue(stored, Decimal("7")) == Decimal("7")
        assert SettlementService._resolve_revenue(stored, None) == Decimal("5")
        assert SettlementService._resolve_revenue(empty, None) == Decimal("0")


class TestCreateInvoices:
    @pytest.mark.asyncio
    async def test_one_document_per_lease_by_sign(self) -> None:
        period = _make_period(
            status=SettlementPeriodStatus.APPROVED,
            calculated_at=datetime.now(UTC),
            total_revenue=Decimal("600000"),
        )
        plots = [
            _make_plot(LEASE_A, "Anna Becker", "500", "500"),
            _make_plot(LEASE_B, "Zeller GmbH", "500", "500"),
        ]
        db = _make_db(
            _scalar_one_or_none(period),
            _scalar_one_or_none(_make_park()),
            _scalar(2),
            _scalars_all(plots),
            _rows([(LEASE_A, Decimal("10000")), (LEASE_B, Decimal("30000"))]),
        )
        invoice_svc = MagicMock()
        invoice_svc.count_open_for_settlement_period = AsyncMock(return_value=0)
        invoice_svc.create_invoice = AsyncMock(side_effect=lambda *a, **kw: MagicMock(id=uuid.uuid4()))

        with patch("src.modules.settlement.service.InvoiceService", return_value=invoice_svc):
            outcome = await SettlementService(db).create_invoices(period.id, ORG_ID, user_id=USER_ID)

        assert len(outcome.invoices) == 2
        calls = {c.kwargs["lease_id"]: c for c in invoice_svc.create_invoice.call_args_list}

        credit = calls[LEASE_A]
        assert credit.kwargs["invoice_type"] == InvoiceType.CREDIT_NOTE
        line = credit.args[1][0]
        assert line.unit_price == Decimal("14000.00")
        assert line.tax_type == TaxType.EXEMPT
        assert credit.kwargs["recipient"].recipient_type == RecipientType.LESSOR
        assert credit.kwargs["settlement_period_id"] == period.id

        refund = calls[LEASE_B]
        assert refund.kwargs["invoice_type"] == InvoiceType.INVOICE
        assert refund.args[1][0].unit_price == Decimal("6000.00")

        assert period.status == SettlementPeriodStatus.APPROVED
        assert _added_transitions(db)[0].action == SettlementAction.CREATE_INVOICES

    @pytest.mark.asyncio
    async def test_existing_invoices_are_conflict(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.APPROVED)
        db = _make_db(_scalar_one_or_none(period))
        invoice_svc = MagicMock()
        invoice_svc.count_open_for_settlement_period = AsyncMock(return_value=3)

        with patch("src.modules.settlement.service.InvoiceService", return_value=invoice_svc):
            with pytest.raises(ConflictException):
                await SettlementService(db).create_invoices(period.id, ORG_ID, user_id=USER_ID)

    @pytest.mark.asyncio
    async def test_requires_approved_period(self) -> None:
        period = _make_period(status=SettlementPeriodStatus.IN_PROGRESS)
        db = _make_db(_scalar_one_or_none(period))

        with pytest.raises(BusinessRuleException, match="CREATE_INVOICES"):
            await SettlementService(db).create_invoices(period.id, ORG_ID, user_id=USER_ID)


class TestServicePeriod:
    def test_quarterly_advance_covers_the_quarter(self) -> None:
        period = _make_period(
            period_type=SettlementPeriodType.ADVANCE,
            month=6,
            advance_interval=AdvanceInterval.QUARTERLY,
        )
        assert service_period_for(period) == (date(2025, 4, 1), date(2025, 6, 30))

    def test_final_covers_the_year(self) -> None:
        assert service_period_for(_make_period()) == (date(2025, 1, 1), date(2025, 12, 31))
