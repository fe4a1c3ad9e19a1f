"""Decimal-safe arithmetic for quantities and money.

Values are converted through their shortest string form so that
``multiply(33.333, 0.30)`` is exactly ``9.9999`` rather than the binary
float ``9.999900000000001``.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

Number = int | float | Decimal | str


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without inheriting binary float error."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def multiply(a: Number, b: Number) -> float:
    return float(to_decimal(a) * to_decimal(b))


def subtract(a: Number, b: Number) -> float:
    return float(to_decimal(a) - to_decimal(b))


def total(values: Iterable[Number]) -> float:
    """Sum values in decimal arithmetic."""
    return float(sum((to_decimal(v) for v in values), Decimal("0")))


def round_to(value: Number, places: int = 2) -> float:
    """Round half-up to a fixed number of decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
