"""Decimal helpers shared by every ledger calculation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Any, rate: Any) -> Decimal:
    """``amount * rate / 100`` without intermediate rounding."""
    return to_decimal(amount) * to_decimal(rate) / HUNDRED


def safe_ratio(numerator: Any, denominator: Any) -> Decimal:
    """Division that yields zero for a zero denominator."""
    denominator = to_decimal(denominator)
    if denominator == ZERO:
        return ZERO
    return to_decimal(numerator) / denominator
