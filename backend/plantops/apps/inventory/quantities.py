from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import InvalidArgument

# Scale and precision of the quantity and unit-cost columns (Numeric(18, 4)).
QUANTUM = Decimal("0.0001")
LIMIT = Decimal("1e14")
# Precision of the total-cost columns (Numeric(28, 8)).
TOTAL_LIMIT = Decimal("1e20")
ZERO = Decimal("0")


def to_decimal(value: Any, *, field: str) -> Decimal:
    if value is None:
        raise InvalidArgument(f"{field} is required")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(value)
        if not result.is_finite():
            raise InvalidArgument(f"{field} must be a number")
        result = result.quantize(QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidArgument(f"{field} must be a number")
    if abs(result) >= LIMIT:
        raise InvalidArgument(f"{field} is too large")
    return result


def line_total(quantity: Decimal, unit_cost: Decimal) -> Decimal:
    # Both factors carry four places, so the product is exact at eight.
    total = quantity * unit_cost
    if abs(total) >= TOTAL_LIMIT:
        raise InvalidArgument("Total cost is too large")
    return total


def display(value: Decimal) -> str:
    """Render a quantity for messages: 100.0000 -> "100", 2.5000 -> "2.5"."""
    normalised = Decimal(value).normalize()
    return format(normalised, "f")


def as_decimal(value: Any) -> Decimal:
    """Coerce a value read back from the store; ``None`` counts as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
