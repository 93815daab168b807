"""Decimal helpers for currency amounts."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a nullable numeric column value; floats go through ``str`` to avoid binary noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up (commercial rounding)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
