"""Numeric coercion and rounding helpers shared by normalization and scaling."""

import math
from decimal import ROUND_HALF_UP, Decimal


def as_number(value: object) -> float | None:
    """Coerce an upstream value to a non-negative finite float, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero, using the shortest decimal repr of `value`."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_calories(value: float) -> float:
    return round_half_up(value, 0)


def round_grams(value: float) -> float:
    return round_half_up(value, 1)
