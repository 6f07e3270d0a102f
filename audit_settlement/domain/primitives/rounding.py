"""Money rounding for amounts held in minor units (cents).

All monetary values are integers in minor units. Products of an amount
and a rate are computed in Decimal and rounded half away from zero, so
``round_half_up(2.5) == 3`` (Python's built-in ``round`` would give 2).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_UNIT = Decimal("1")


def to_decimal(value: int | float | Decimal) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def round_half_up(value: int | float | Decimal) -> int:
    """Round to the nearest integer, halves away from zero.

    Args:
        value: Amount to round.

    Returns:
        The rounded integer.
    """
    return int(to_decimal(value).quantize(_UNIT, rounding=ROUND_HALF_UP))
