"""Fixed-point money helpers."""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")
# Comparison slack for backends that store NUMERIC as binary floats (SQLite)
HALF_CENT = Decimal("0.005")


def to_money(value) -> Decimal:
    """Coerce int/float/str/Decimal to a 2-place Decimal (half-up).

    Floats go through str() so 0.1 becomes Decimal("0.10"), not its binary
    expansion.

    Raises:
        ValueError: value is not a finite number, or too large to hold in cents
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {value!r}")


def roi_for(amount: Decimal, roi_percent: Decimal) -> Decimal:
    """roi_amount = amount * roi_percent / 100, rounded to the cent."""
    return to_money(Decimal(amount) * Decimal(roi_percent) / Decimal(100))
