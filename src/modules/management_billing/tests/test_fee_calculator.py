"""Tests for the management fee calculator."""

from __future__ import annotations

import uuid
from decimal import Decimal

from src.modules.management_billing.fee_calculator import (
    FundRevenue,
    compute_fee,
    compute_fund_breakdown,
)


class TestComputeFee:
    def test_reference_values(self):
        result = compute_fee(Decimal("100000"), Decimal("2.5"), Decimal("0.19"))
        assert result.fee_net == Decimal("2500.00")
        assert result.tax_amount == Decimal("475.00")
        assert result.fee_gross == Decimal("2975.00")

    def test_exempt(self):
        result = compute_fee(Decimal("80000"), Decimal("1.75"), Decimal("0"))
        assert result.fee_net == Decimal("1400.00")
        assert result.tax_amount == Decimal("0.00")
        assert result.fee_gross == Decimal("1400.00")

    def test_rounds_half_up_to_cents(self):
        # 1234.57 x 1.5 % = 18.51855 -> 18.52; 18.52 x 0.07 = 1.2964 -> 1.30
        result = compute_fee(Decimal("1234.57"), Decimal("1.5"), Decimal("0.07"))
        assert result.fee_net == Decimal("18.52")
        assert result.tax_amount == Decimal("1.30")
        assert result.fee_gross == Decimal("19.82")

    def test_accepts_plain_numbers(self):
        result = compute_fee(100000, "2.5", "0.19")
        assert result.fee_gross == Decimal("2975.00")


class TestFundBreakdown:
    def test_reference_split(self):
        fund_a, fund_b = uuid.uuid4(), uuid.uuid4()
        shares = compute_fund_breakdown(
            Decimal("2500.00"),
            Decimal("100000"),
            [
                FundRevenue(fund_a, "Nordfeld I", Decimal("60000")),
                FundRevenue(fund_b, "Nordfeld II", Decimal("40000")),
            ],
        )
        assert [s.fund_id for s in shares] == [fund_a, fund_b]
        assert [s.share for s in shares] == [Decimal("0.600000"), Decimal("0.400000")]
        assert [s.fee_amount for s in shares] == [Decimal("1500.00"), Decimal("1000.00")]

    def test_remainder_goes_to_last_fund(self):
        shares = compute_fund_breakdown(
            Decimal("100.00"),
            Decimal("3"),
            [
                FundRevenue(uuid.uuid4(), "A", Decimal("1")),
                FundRevenue(uuid.uuid4(), "B", Decimal("1")),
                FundRevenue(uuid.uuid4(), "C", Decimal("1")),
            ],
        )
        assert [s.fee_amount for s in shares] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert sum(s.fee_amount for s in shares) == Decimal("100.00")

    def test_zero_base_gives_empty_breakdown(self):
        assert compute_fund_breakdown(
            Decimal("0"), Decimal("0"), [FundRevenue(uuid.uuid4(), "A", Decimal("0"))]
        ) == []

    def test_no_funds(self):
        assert compute_fund_breakdown(Decimal("10"), Decimal("1000"), []) == []

    def test_to_json_is_serializable(self):
        fund_id = uuid.uuid4()
        (share,) = compute_fund_breakdown(
            Decimal("50.00"), Decimal("1000"), [FundRevenue(fund_id, "A", Decimal("1000"))]
        )
        assert share.to_json() == {
            "fund_id": str(fund_id),
            "fund_name": "A",
            "revenue": "1000",
            "share": "1.000000",
            "fee_amount": "50.00",
        }
