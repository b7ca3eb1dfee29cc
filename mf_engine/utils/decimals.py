"""
Decimal helpers.
Units carry 4 fractional digits, money and percentages 2, NAVs 4.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")

UNITS_Q = Decimal("0.0001")
NAV_Q = Decimal("0.0001")
MONEY_Q = Decimal("0.01")
PCT_Q = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise ValueError("Cannot convert None to Decimal")
    return Decimal(str(value))


def q_units(value: Decimal) -> Decimal:
    return value.quantize(UNITS_Q, rounding=ROUND_HALF_UP)


def q_nav(value: Decimal) -> Decimal:
    return value.quantize(NAV_Q, rounding=ROUND_HALF_UP)


def q_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def q_pct(value: Decimal) -> Decimal:
    return value.quantize(PCT_Q, rounding=ROUND_HALF_UP)
