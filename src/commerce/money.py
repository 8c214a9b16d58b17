"""Two-decimal money arithmetic.

Amounts are persisted as floats; every calculation goes through Decimal
and is rounded half-up to cents so totals never drift.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value) -> float:
    return float(to_money(value))


def line_total(unit_price, quantity: int) -> Decimal:
    return to_money(to_money(unit_price) * quantity)


def money_sum(values) -> Decimal:
    return to_money(sum((to_money(v) for v in values), ZERO))
