"""Percentage management fee on park revenue, with an optional split across funds."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from src.money import ZERO, round_money, to_decimal

SHARE_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class FeeResult:
    fee_net: Decimal
    tax_amount: Decimal
    fee_gross: Decimal


@dataclass(frozen=True)
class FundRevenue:
    fund_id: uuid.UUID | None
    fund_name: str | None
    revenue: Decimal


@dataclass(frozen=True)
class FundFeeShare:
    fund_id: uuid.UUID | None
    fund_name: str | None
    revenue: Decimal
    share: Decimal
    fee_amount: Decimal

    def to_json(self) -> dict:
        return {
            "fund_id": str(self.fund_id) if self.fund_id else None,
            "fund_name": self.fund_name,
            "revenue": str(self.revenue),
            "share": str(self.share),
            "fee_amount": str(self.fee_amount),
        }


def compute_fee(
    base_revenue: Decimal | int | str,
    fee_percentage: Decimal | int | str,
    tax_rate: Decimal | int | str,
) -> FeeResult:
    """Net fee, VAT and gross fee.

    ``fee_percentage`` is in percent (2.5 means 2.5 %), ``tax_rate`` is a
    fraction (0.19). The percentage range is validated by the caller.
    """
    fee_net = round_money(to_decimal(base_revenue) * to_decimal(fee_percentage) / Decimal(100))
    tax_amount = round_money(fee_net * to_decimal(tax_rate))
    return FeeResult(fee_net=fee_net, tax_amount=tax_amount, fee_gross=fee_net + tax_amount)


def compute_fund_breakdown(
    fee_net: Decimal,
    base_revenue: Decimal,
    funds: list[FundRevenue],
) -> list[FundFeeShare]:
    """Split ``fee_net`` by each fund's share of ``base_revenue``.

    The last fund absorbs the rounding remainder so the amounts add up to
    ``fee_net`` exactly. Returns an empty list when there is no revenue.
    """
    if base_revenue <= ZERO or not funds:
        return []

    shares: list[FundFeeShare] = []
    allocated = ZERO
    for index, fund in enumerate(funds):
        ratio = fund.revenue / base_revenue
        if index == len(funds) - 1:
            amount = fee_net - allocated
        else:
            amount = round_money(fee_net * ratio)
            allocated += amount
        shares.append(
            FundFeeShare(
                fund_id=fund.fund_id,
                fund_name=fund.fund_name,
                revenue=fund.revenue,
                share=ratio.quantize(SHARE_QUANTUM),
                fee_amount=amount,
            )
        )
    return shares
