"""Major/minor currency unit conversion at the gateway boundary."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

MINOR_UNITS_PER_MAJOR = 100

Number = Union[int, float, str, Decimal]


def to_minor(amount: Number) -> int:
    """Convert a caller-facing amount (e.g. 100.5) into wire units (10050)."""
    try:
        value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError(f"Amount {amount!r} cannot be expressed in minor units")
    return int(value)


def to_major(amount: Number) -> Union[int, float]:
    """Convert a wire amount back to major units; whole values stay ``int``."""
    try:
        value = Decimal(str(amount)) / MINOR_UNITS_PER_MAJOR
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if value == value.to_integral_value():
        return int(value)
    return float(value)
