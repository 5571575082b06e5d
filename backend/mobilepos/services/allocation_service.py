# Overview: Service-layer operations for document totals; spreads a document discount across lines.

"""
Document Allocator

The document discount (Fixed amount, or Percentage of the pre-discount
sum of line totals) is clamped to that sum and shared out in proportion to
each line's total. Allocated line totals are rounded once, with the
largest-remainder rule, so that they add up to grand_total exactly:

1. exact share_i = T_i - D * T_i / G         (Decimal, unrounded)
2. grand_total   = round(G - D)
3. floor every share, then hand the missing units one at a time to the
   lines with the largest fractional remainders (ties: earlier line first)

Each line's taxable value and GST are then recomputed at its own rate from
the rounded total, and the document sub_total / gst_total are their sums.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError
from ..models.catalog import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, DISCOUNT_TYPES
from ..money import ZERO, to_decimal, percent_of, round_amount, floor_amount
from ..validation import coerce_decimal
from .pricing_service import PricedLine, split_tax


@dataclass
class DocumentTotals:
    gross_total: int
    discount: int
    discount_type: str
    discount_value: Decimal
    sub_total: int
    gst_total: int
    grand_total: int


def resolve_document_discount(gross_total: int, value, discount_type: str = DISCOUNT_FIXED) -> Decimal:
    """Absolute (unrounded) discount, clamped to [0, gross_total]."""
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(
            f"discount_type must be one of {list(DISCOUNT_TYPES)}",
            details={"field": "discount_type"},
        )
    amount = max(coerce_decimal(value if value is not None else 0, "discount"), ZERO)
    if discount_type == DISCOUNT_PERCENTAGE:
        amount = percent_of(gross_total, min(amount, Decimal("100")))
    return min(amount, to_decimal(gross_total))


def largest_remainder_round(values: list[Decimal], target: int) -> list[int]:
    """
    Round values to integers that sum to target.

    target must lie between sum(floor(v)) and sum(floor(v)) + len(values).
    """
    floors = [floor_amount(v) for v in values]
    shortfall = target - sum(floors)
    if shortfall < 0 or shortfall > len(values):
        raise ValueError("target is not reachable by rounding the given values")
    order = sorted(range(len(values)), key=lambda i: (-(values[i] - floors[i]), i))
    for i in order[:shortfall]:
        floors[i] += 1
    return floors


def allocate_document_discount(lines: list[PricedLine], discount_value=0, discount_type: str = DISCOUNT_FIXED) -> DocumentTotals:
    """Fill total, discount_share and tax on every line; return the document totals."""
    gross_total = sum(line.line_total for line in lines)
    discount = resolve_document_discount(gross_total, discount_value, discount_type)
    grand_total = round_amount(to_decimal(gross_total) - discount)

    if gross_total > 0:
        exact = [
            to_decimal(line.line_total) - discount * to_decimal(line.line_total) / to_decimal(gross_total)
            for line in lines
        ]
    else:
        exact = [ZERO for _ in lines]

    totals = largest_remainder_round(exact, grand_total)

    sub_total = 0
    gst_total = 0
    for line, total in zip(lines, totals):
        line.total = total
        line.discount_share = line.line_total - total
        line.tax = split_tax(total, line.gst_percent)
        sub_total += line.tax.taxable_value
        gst_total += line.tax.gst_amount

    return DocumentTotals(
        gross_total=gross_total,
        discount=gross_total - grand_total,
        discount_type=discount_type,
        discount_value=coerce_decimal(discount_value if discount_value is not None else 0, "discount"),
        sub_total=sub_total,
        gst_total=gst_total,
        grand_total=grand_total,
    )
