"""
Amounts -- Decimal coercion and presentation rounding.

Responsibility:
    Single place where raw inputs become ``Decimal`` and where amounts are
    rounded to cents. Engines keep full precision and round only where a
    legal figure is defined to two decimals (rent revision).

Invariants enforced:
    - Monetary values are ``Decimal`` -- NEVER ``float``.
    - Rounding is half-up to the cent, the way rent figures are published.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """
    Convert a raw amount to ``Decimal``.

    Floats are converted through ``str`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.

    Raises:
        ValueError: If the value cannot be interpreted as a number.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def round2(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round to two decimal places (half-up by default)."""
    return value.quantize(CENT, rounding=rounding)
