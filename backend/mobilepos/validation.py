from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from mobilepos.errors import ValidationError
from mobilepos.money import to_decimal, round_amount
from mobilepos.time_utils import parse_iso_datetime


# Maximum amount: 99,99,99,999 (whole currency units)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = 999_999_999


def require_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required", details={"field": field})
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_decimal(value: Any, field: str) -> Decimal:
    # Reject bools explicitly (bool is a subclass of int)
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} must be a number", details={"field": field})
    try:
        result = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    return result


def coerce_amount(value: Any, field: str, *, default: int | None = None) -> int:
    """Non-negative whole-unit amount, rounded half-up."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", details={"field": field})
    amount = round_amount(coerce_decimal(value, field))
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field})
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum allowed amount", details={"field": field})
    return amount


def coerce_quantity(value: Any, field: str = "quantity") -> int:
    """Strict positive integer: rejects decimals, bools and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer", details={"field": field})
    if isinstance(value, int):
        qty = value
    elif isinstance(value, float) and value.is_integer():
        qty = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise ValidationError(f"{field} must be a positive integer", details={"field": field})
    if qty <= 0:
        raise ValidationError(f"{field} must be a positive integer", details={"field": field})
    return qty


def coerce_percent(value: Any, field: str) -> Decimal:
    percent = coerce_decimal(value, field)
    if percent < 0 or percent > 100:
        raise ValidationError(f"{field} must be between 0 and 100", details={"field": field})
    return percent


def coerce_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime", details={"field": field})
    raise ValidationError(f"{field} must be a datetime", details={"field": field})


def coerce_choice(value: Any, field: str, choices, *, default: str | None = None) -> str:
    if value is None and default is not None:
        return default
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of {list(choices)}",
            details={"field": field, "value": value},
        )
    return value
