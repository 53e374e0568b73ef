from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError

# Maximum single restock / opening stock: 100 tonnes
MAX_STOCK_GRAMS = 100_000_000

# Maximum target: 99,999,999.99 (9,999,999,999 cents)
MAX_TARGET_CENTS = 9_999_999_999


def require_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion for request payloads.

    Accepts ints and plain digit strings; rejects bools, floats, decimals
    and scientific notation.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def require_decimal(value: Any, field: str) -> Decimal:
    """Parse a JSON number (or numeric string) into a Decimal without float noise."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
        if not result.is_finite():
            raise ValidationError(f"{field} must be a finite number")
        return result
    raise ValidationError(f"{field} must be a number")


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def kg_to_grams(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """
    Convert a kg quantity to whole grams (half-up), rejecting negatives.

    allow_zero=False additionally rejects 0 (restocks must be positive).
    """
    kg = require_decimal(value, field)
    if kg < 0:
        raise ValidationError(f"{field} cannot be negative")
    grams = round_half_up(kg * 1000)
    if not allow_zero and grams <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if grams > MAX_STOCK_GRAMS:
        raise ValidationError(f"{field} exceeds the maximum of {MAX_STOCK_GRAMS // 1000} kg")
    return grams


def line_value_cents(weight_grams: int, selling_rate_per_kg_cents: int) -> int:
    """round2(weight_grams / 1000 * selling rate), computed in cents."""
    return round_half_up(Decimal(weight_grams) * Decimal(selling_rate_per_kg_cents) / Decimal(1000))


def percentage_of_cents(amount_cents: int, percentage: float | Decimal) -> int:
    """round2(amount * percentage / 100), computed in cents."""
    return round_half_up(Decimal(amount_cents) * Decimal(str(percentage)) / Decimal(100))


def require_non_negative_cents(value: Any, field: str) -> int:
    return require_int(value, field, minimum=0, maximum=MAX_TARGET_CENTS)


def require_percentage(value: Any, field: str) -> float:
    pct = require_decimal(value, field)
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return float(pct)
