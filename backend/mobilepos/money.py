# Overview: Decimal helpers for whole-unit currency amounts.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr() keeps the shortest round-tripping form (0.1 -> "0.1")
        return Decimal(repr(value))
    return Decimal(value)


def round_amount(value) -> int:
    """Round half-up to the smallest currency unit."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def floor_amount(value) -> int:
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_FLOOR))


def percent_of(amount, percent) -> Decimal:
    return to_decimal(amount) * to_decimal(percent) / HUNDRED


def half(amount) -> Decimal:
    """Even CGST/SGST split; two decimal places always suffice."""
    return (to_decimal(amount) / 2).quantize(Decimal("0.01"))
