"""Tests for ManagementBillingService: stakeholder rules, fee history, billing snapshots."""

from __future__ import annotations

import uuid
from datetime import date
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
    InvoiceType,
    ManagementBillingStatus,
    RecipientType,
    StakeholderRole,
    StakeholderStatus,
    TaxType,
)
from src.models.management_billing import ManagementBilling
from src.models.organization import Organization
from src.models.park_stakeholder import ParkStakeholder, StakeholderFeeHistory
from src.modules.management_billing.schemas import (
    BillingCreate,
    FeeHistoryCreate,
    StakeholderCreate,
    StakeholderUpdate,
)
from src.modules.management_billing.service import (
    ManagementBillingService,
    check_billing_config,
)

ORG_ID = uuid.uuid4()
PARK_ORG_ID = uuid.uuid4()
PARK_ID = uuid.uuid4()
USER_ID = uuid.uuid4()


def _make_stakeholder(
    role: StakeholderRole = StakeholderRole.TECHNICAL_BF,
    fee_percentage: Decimal | None = Decimal("2.5"),
    billing_enabled: bool = True,
    status: StakeholderStatus = StakeholderStatus.ACTIVE,
) -> MagicMock:
    stakeholder = MagicMock(spec=ParkStakeholder)
    stakeholder.id = uuid.uuid4()
    stakeholder.organization_id = ORG_ID
    stakeholder.park_id = PARK_ID
    stakeholder.park_organization_id = PARK_ORG_ID
    stakeholder.role = role
    stakeholder.fee_percentage = fee_percentage
    stakeholder.billing_enabled = billing_enabled
    stakeholder.tax_type = TaxType.STANDARD
    stakeholder.visible_fund_ids = []
    stakeholder.status = status
    stakeholder.valid_from = date(2020, 1, 1)
    stakeholder.valid_to = None
    return stakeholder


def _make_history(fee: str, valid_from: date) -> MagicMock:
    entry = MagicMock(spec=StakeholderFeeHistory)
    entry.fee_percentage = Decimal(fee)
    entry.valid_from = valid_from
    entry.valid_until = None
    return entry


def _scalar(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _scalars(values: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _rows(rows: list) -> MagicMock:
    result = MagicMock()
    result.all.return_value = rows
    return result


class _Savepoint:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


def _make_db(*results) -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    db.begin_nested = MagicMock(side_effect=lambda: _Savepoint())
    return db


# ---------------------------------------------------------------------------
# Feature flag
# ---------------------------------------------------------------------------


class TestFeatureFlag:
    @pytest.mark.asyncio
    async def test_tenant_setting_wins(self):
        db = _make_db(_scalar({"management_billing_enabled": True}))
        assert await ManagementBillingService(db).is_enabled(ORG_ID) is True

    @pytest.mark.asyncio
    async def test_falls_back_to_default(self):
        db = _make_db(_scalar({}))
        with patch("src.modules.management_billing.service.settings") as mock_settings:
            mock_settings.management_billing_enabled = False
            assert await ManagementBillingService(db).is_enabled(ORG_ID) is False

    @pytest.mark.asyncio
    async def test_disabled_reports_not_found(self):
        db = _make_db(_scalar({"management_billing_enabled": False}))
        with pytest.raises(NotFoundException):
            await ManagementBillingService(db).ensure_enabled(ORG_ID)


# ---------------------------------------------------------------------------
# Stakeholders
# ---------------------------------------------------------------------------


class TestBillingConfig:
    def test_bf_role_with_billing_needs_fee(self):
        with pytest.raises(ValidationException):
            check_billing_config(StakeholderRole.COMMERCIAL_BF, True, None)

    def test_bf_role_without_billing_may_omit_fee(self):
        check_billing_config(StakeholderRole.TECHNICAL_BF, False, None)

    def test_other_roles_are_unrestricted(self):
        check_billing_config(StakeholderRole.GRID_OPERATOR, True, None)


class TestCreateStakeholder:
    def _body(self, **overrides) -> StakeholderCreate:
        data = {
            "park_id": PARK_ID,
            "park_organization_id": PARK_ORG_ID,
            "role": StakeholderRole.TECHNICAL_BF,
            "fee_percentage": Decimal("2.5"),
            "billing_enabled": True,
            "valid_from": date(2026, 1, 1),
        }
        data.update(overrides)
        return StakeholderCreate(**data)

    @pytest.mark.asyncio
    async def test_creates_stakeholder_and_initial_fee_entry(self):
        db = _make_db(_scalar(PARK_ID), _scalar(None))
        svc = ManagementBillingService(db)

        stakeholder = await svc.create_stakeholder(ORG_ID, self._body(), created_by_id=USER_ID)

        assert stakeholder.status == StakeholderStatus.ACTIVE
        assert stakeholder.fee_percentage == Decimal("2.5")
        added = [call.args[0] for call in db.add.call_args_list]
        assert len(added) == 2
        history = added[1]
        assert isinstance(history, StakeholderFeeHistory)
        assert history.valid_from == date(2026, 1, 1)
        assert history.valid_until is None

    @pytest.mark.asyncio
    async def test_park_of_other_organization_not_found(self):
        db = _make_db(_scalar(None))
        svc = ManagementBillingService(db)

        with pytest.raises(NotFoundException):
            await svc.create_stakeholder(ORG_ID, self._body())

    @pytest.mark.asyncio
    async def test_duplicate_role_conflicts(self):
        db = _make_db(_scalar(PARK_ID), _scalar(uuid.uuid4()))
        svc = ManagementBillingService(db)

        with pytest.raises(ConflictException):
            await svc.create_stakeholder(ORG_ID, self._body())
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_billing_bf_without_fee_rejected(self):
        db = _make_db(_scalar(PARK_ID), _scalar(None))
        svc = ManagementBillingService(db)

        with pytest.raises(ValidationException):
            await svc.create_stakeholder(ORG_ID, self._body(fee_percentage=None))
        db.add.assert_not_called()

    def test_fee_above_100_rejected_at_schema(self):
        with pytest.raises(ValueError):
            self._body(fee_percentage=Decimal("100.5"))

    def test_zero_fee_rejected_at_schema(self):
        with pytest.raises(ValueError):
            self._body(fee_percentage=Decimal("0"))


class TestUpdateStakeholder:
    @pytest.mark.asyncio
    async def test_fee_change_goes_through_history(self):
        stakeholder = _make_stakeholder(fee_percentage=Decimal("2.5"))
        open_entry = _make_history("2.5", date(2025, 1, 1))
        db = _make_db(_scalar(stakeholder), _scalars([open_entry]))
        svc = ManagementBillingService(db)

        await svc.update_stakeholder(
            stakeholder.id,
            ORG_ID,
            StakeholderUpdate(fee_percentage=Decimal("3.0"), fee_change_reason="Contract renewal"),
            user_id=USER_ID,
        )

        assert stakeholder.fee_percentage == Decimal("3.0")
        assert open_entry.valid_until is not None
        new_entry = db.add.call_args.args[0]
        assert new_entry.fee_percentage == Decimal("3.0")
        assert new_entry.reason == "Contract renewal"
        assert new_entry.valid_from == open_entry.valid_until

    @pytest.mark.asyncio
    async def test_disabling_billing_keeps_fee_history(self):
        stakeholder = _make_stakeholder()
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        await svc.update_stakeholder(
            stakeholder.id, ORG_ID, StakeholderUpdate(billing_enabled=False)
        )

        assert stakeholder.billing_enabled is False
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_enabling_billing_without_fee_rejected(self):
        stakeholder = _make_stakeholder(fee_percentage=None, billing_enabled=False)
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        with pytest.raises(ValidationException):
            await svc.update_stakeholder(
                stakeholder.id, ORG_ID, StakeholderUpdate(billing_enabled=True)
            )
        assert stakeholder.billing_enabled is False

    @pytest.mark.asyncio
    async def test_deactivate_is_soft(self):
        stakeholder = _make_stakeholder()
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        await svc.deactivate_stakeholder(stakeholder.id, ORG_ID)

        assert stakeholder.status == StakeholderStatus.INACTIVE
        assert stakeholder.valid_to is not None
        db.delete.assert_not_called()


class TestFeeHistory:
    @pytest.mark.asyncio
    async def test_new_entry_closes_open_one(self):
        stakeholder = _make_stakeholder(fee_percentage=Decimal("2.5"))
        open_entry = _make_history("2.5", date(2025, 1, 1))
        db = _make_db(_scalar(stakeholder), _scalars([open_entry]))
        svc = ManagementBillingService(db)

        entry = await svc.add_fee_entry(
            stakeholder.id,
            ORG_ID,
            FeeHistoryCreate(fee_percentage=Decimal("2.75"), valid_from=date(2026, 7, 1)),
            user_id=USER_ID,
        )

        assert open_entry.valid_until == date(2026, 7, 1)
        assert entry.valid_from == date(2026, 7, 1)
        assert entry.valid_until is None
        assert entry.created_by_id == USER_ID
        assert stakeholder.fee_percentage == Decimal("2.75")

    @pytest.mark.asyncio
    async def test_entry_before_open_one_rejected(self):
        stakeholder = _make_stakeholder(fee_percentage=Decimal("2.5"))
        open_entry = _make_history("2.5", date(2026, 1, 1))
        db = _make_db(_scalar(stakeholder), _scalars([open_entry]))
        svc = ManagementBillingService(db)

        with pytest.raises(ValidationException):
            await svc.add_fee_entry(
                stakeholder.id,
                ORG_ID,
                FeeHistoryCreate(fee_percentage=Decimal("3"), valid_from=date(2025, 6, 1)),
            )
        assert open_entry.valid_until is None
        assert stakeholder.fee_percentage == Decimal("2.5")


# ---------------------------------------------------------------------------
# Billings
# ---------------------------------------------------------------------------


class TestCreateBilling:
    @pytest.mark.asyncio
    async def test_snapshot_with_fund_breakdown(self):
        stakeholder = _make_stakeholder(fee_percentage=Decimal("2.5"))
        fund_a, fund_b = uuid.uuid4(), uuid.uuid4()
        db = _make_db(
            _scalar(stakeholder),
            _scalar(None),
            _rows(
                [
                    (fund_a, "Nordfeld I", Decimal("60000")),
                    (fund_b, "Nordfeld II", Decimal("40000")),
                ]
            ),
        )
        svc = ManagementBillingService(db)

        billing = await svc.create_billing(
            ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
        )

        assert isinstance(billing, ManagementBilling)
        assert billing.month is None
        assert billing.base_revenue == Decimal("100000.00")
        assert billing.fee_percentage_used == Decimal("2.5")
        assert billing.fee_net == Decimal("2500.00")
        assert billing.tax_rate == Decimal("19")
        assert billing.tax_amount == Decimal("475.00")
        assert billing.fee_gross == Decimal("2975.00")
        assert billing.status == ManagementBillingStatus.CALCULATED
        assert [entry["fee_amount"] for entry in billing.fund_breakdown] == ["1500.00", "1000.00"]
        assert billing.fund_breakdown[0]["fund_id"] == str(fund_a)

    @pytest.mark.asyncio
    async def test_later_fee_change_leaves_snapshot(self):
        stakeholder = _make_stakeholder(fee_percentage=Decimal("2.5"))
        db = _make_db(
            _scalar(stakeholder), _scalar(None), _rows([(None, None, Decimal("10000"))])
        )
        svc = ManagementBillingService(db)

        billing = await svc.create_billing(
            ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025, month=3)
        )
        stakeholder.fee_percentage = Decimal("4")

        assert billing.fee_percentage_used == Decimal("2.5")
        assert billing.fee_net == Decimal("250.00")
        assert billing.fund_breakdown == []

    @pytest.mark.asyncio
    async def test_existing_billing_conflicts(self):
        stakeholder = _make_stakeholder()
        existing = MagicMock(spec=ManagementBilling)
        existing.status = ManagementBillingStatus.CALCULATED
        db = _make_db(_scalar(stakeholder), _scalar(existing))
        svc = ManagementBillingService(db)

        with pytest.raises(ConflictException):
            await svc.create_billing(
                ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
            )

    @pytest.mark.asyncio
    async def test_cancelled_billing_is_recalculated_in_place(self):
        stakeholder = _make_stakeholder()
        existing = MagicMock(spec=ManagementBilling)
        existing.id = uuid.uuid4()
        existing.status = ManagementBillingStatus.CANCELLED
        db = _make_db(
            _scalar(stakeholder), _scalar(existing), _rows([(None, None, Decimal("20000"))])
        )
        svc = ManagementBillingService(db)

        billing = await svc.create_billing(
            ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
        )

        assert billing is existing
        assert existing.status == ManagementBillingStatus.CALCULATED
        assert existing.fee_net == Decimal("500.00")
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_revenue_rejected(self):
        stakeholder = _make_stakeholder()
        db = _make_db(_scalar(stakeholder), _scalar(None), _rows([]))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException, match="No energy revenue"):
            await svc.create_billing(
                ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
            )

    @pytest.mark.asyncio
    async def test_tax_type_is_part_of_snapshot(self):
        stakeholder = _make_stakeholder()
        stakeholder.tax_type = TaxType.REDUCED
        db = _make_db(
            _scalar(stakeholder), _scalar(None), _rows([(None, None, Decimal("10000"))])
        )
        svc = ManagementBillingService(db)

        billing = await svc.create_billing(
            ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
        )

        assert billing.tax_type == TaxType.REDUCED
        assert billing.tax_rate == Decimal("7")

    @pytest.mark.asyncio
    async def test_period_after_valid_to_rejected(self):
        stakeholder = _make_stakeholder()
        stakeholder.valid_to = date(2025, 3, 31)
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException, match="not valid in 04/2025"):
            await svc.create_billing(
                ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025, month=4)
            )

    @pytest.mark.asyncio
    async def test_period_before_valid_from_rejected(self):
        stakeholder = _make_stakeholder()
        stakeholder.valid_from = date(2026, 1, 1)
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException, match="not valid in 2025"):
            await svc.create_billing(
                ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
            )

    @pytest.mark.asyncio
    async def test_year_overlapping_validity_is_billed(self):
        stakeholder = _make_stakeholder()
        stakeholder.valid_from = date(2025, 7, 1)
        stakeholder.valid_to = date(2025, 9, 30)
        db = _make_db(
            _scalar(stakeholder), _scalar(None), _rows([(None, None, Decimal("10000"))])
        )
        svc = ManagementBillingService(db)

        billing = await svc.create_billing(
            ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
        )

        assert billing.status == ManagementBillingStatus.CALCULATED

    @pytest.mark.asyncio
    async def test_billing_disabled_rejected(self):
        stakeholder = _make_stakeholder(billing_enabled=False)
        db = _make_db(_scalar(stakeholder))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException):
            await svc.create_billing(
                ORG_ID, BillingCreate(stakeholder_id=stakeholder.id, year=2025)
            )


class TestBatchCalculate:
    @pytest.mark.asyncio
    async def test_reports_success_skip_and_failure(self):
        billed = _make_stakeholder()
        already = _make_stakeholder()
        no_revenue = _make_stakeholder()
        existing = MagicMock(spec=ManagementBilling)
        existing.status = ManagementBillingStatus.INVOICED
        db = _make_db(
            _scalars([billed, already, no_revenue]),
            # billed
            _scalar(None),
            _rows([(None, None, Decimal("50000"))]),
            # already
            _scalar(existing),
            # no_revenue
            _scalar(None),
            _rows([]),
        )
        svc = ManagementBillingService(db)

        result = await svc.batch_calculate(ORG_ID, 2025)

        assert result.processed == 3
        assert result.succeeded == 1
        assert result.skipped == 1
        assert result.failed == 1
        assert result.errors[0]["stakeholder_id"] == no_revenue.id
        assert db.begin_nested.call_count == 3


class TestBillingInvoice:
    def _billing(self, status: ManagementBillingStatus) -> MagicMock:
        billing = MagicMock(spec=ManagementBilling)
        billing.id = uuid.uuid4()
        billing.stakeholder_id = uuid.uuid4()
        billing.year = 2025
        billing.month = None
        billing.base_revenue = Decimal("100000.00")
        billing.fee_percentage_used = Decimal("2.5")
        billing.fee_net = Decimal("2500.00")
        billing.tax_type = TaxType.STANDARD
        billing.tax_rate = Decimal("19")
        billing.tax_amount = Decimal("475.00")
        billing.fee_gross = Decimal("2975.00")
        billing.status = status
        billing.invoice_id = None
        return billing

    @pytest.mark.asyncio
    async def test_invoices_park_owner(self):
        billing = self._billing(ManagementBillingStatus.CALCULATED)
        stakeholder = _make_stakeholder()
        owner = MagicMock(spec=Organization)
        owner.id = PARK_ORG_ID
        owner.name = "Nordfeld Betreiber"
        owner.legal_name = "Nordfeld Betreiber GmbH"
        owner.address = {"street": "Deichweg 1", "city": "25813 Husum"}
        db = _make_db(
            _scalar(billing), _scalar(stakeholder), _scalar("Windpark Nordfeld"), _scalar(owner)
        )
        invoice = MagicMock(id=uuid.uuid4(), invoice_number="RE-2026-000042")

        with patch("src.modules.management_billing.service.InvoiceService") as invoice_svc_cls:
            invoice_svc_cls.return_value.create_invoice = AsyncMock(return_value=invoice)
            svc = ManagementBillingService(db)
            result = await svc.create_invoice(billing.id, ORG_ID, user_id=USER_ID)

        assert result.status == ManagementBillingStatus.INVOICED
        assert result.invoice_id == invoice.id
        call = invoice_svc_cls.return_value.create_invoice.call_args
        (line,) = call.args[1]
        assert line.unit_price == Decimal("2500.00")
        assert line.tax_type == TaxType.STANDARD
        assert "Windpark Nordfeld 2025" in line.description
        assert call.kwargs["invoice_type"] == InvoiceType.INVOICE
        recipient = call.kwargs["recipient"]
        assert recipient.recipient_type == RecipientType.CUSTOM
        assert recipient.recipient_name == "Nordfeld Betreiber GmbH"
        assert recipient.recipient_address == "Deichweg 1, 25813 Husum"
        assert call.kwargs["service_period_start"] == date(2025, 1, 1)
        assert call.kwargs["service_period_end"] == date(2025, 12, 31)

    @pytest.mark.asyncio
    async def test_invoice_uses_snapshot_tax_type(self):
        billing = self._billing(ManagementBillingStatus.CALCULATED)
        stakeholder = _make_stakeholder()
        stakeholder.tax_type = TaxType.REDUCED
        owner = MagicMock(spec=Organization)
        owner.id = PARK_ORG_ID
        owner.name = "Nordfeld Betreiber"
        owner.legal_name = None
        owner.address = None
        db = _make_db(
            _scalar(billing), _scalar(stakeholder), _scalar("Windpark Nordfeld"), _scalar(owner)
        )
        invoice = MagicMock(id=uuid.uuid4(), invoice_number="RE-2026-000043")

        with patch("src.modules.management_billing.service.InvoiceService") as invoice_svc_cls:
            invoice_svc_cls.return_value.create_invoice = AsyncMock(return_value=invoice)
            svc = ManagementBillingService(db)
            await svc.create_invoice(billing.id, ORG_ID)

        (line,) = invoice_svc_cls.return_value.create_invoice.call_args.args[1]
        assert line.tax_type == TaxType.STANDARD
        assert line.unit_price == billing.fee_net

    @pytest.mark.asyncio
    async def test_changed_tax_rate_blocks_invoice(self):
        billing = self._billing(ManagementBillingStatus.CALCULATED)
        db = _make_db(_scalar(billing))
        svc = ManagementBillingService(db)

        with patch("src.modules.management_billing.service.tax_rate_percent", return_value=Decimal("20")):
            with pytest.raises(BusinessRuleException, match="tax rate changed"):
                await svc.create_invoice(billing.id, ORG_ID)
        assert billing.status == ManagementBillingStatus.CALCULATED

    @pytest.mark.asyncio
    async def test_only_calculated_billings_invoiced(self):
        billing = self._billing(ManagementBillingStatus.INVOICED)
        db = _make_db(_scalar(billing))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException):
            await svc.create_invoice(billing.id, ORG_ID)

    @pytest.mark.asyncio
    async def test_cancel_invoiced_rejected(self):
        billing = self._billing(ManagementBillingStatus.INVOICED)
        db = _make_db(_scalar(billing))
        svc = ManagementBillingService(db)

        with pytest.raises(BusinessRuleException):
            await svc.cancel_billing(billing.id, ORG_ID)
        assert billing.status == ManagementBillingStatus.INVOICED
