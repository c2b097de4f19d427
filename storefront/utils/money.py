"""Money and quantity helpers shared by cart, ledger, order and payment code."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """
    Convert a JSON-ish number (int, float, str, Decimal, None) to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.

    Raises:
        ValueError: if the value is not numeric.
    """
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid amount: {value!r}')


def quantize_money(value) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value) -> int:
    """
    Convert a unit count (int, whole float, numeric string) to int.

    Fractions are rejected rather than truncated: 2.7 units is an input
    error, not 2 units.

    Raises:
        ValueError: if the value is not a finite whole number.
    """
    if isinstance(value, bool):
        raise ValueError(f'Invalid quantity: {value!r}')
    if isinstance(value, int):
        return value
    try:
        number = to_decimal(value)
    except ValueError:
        raise ValueError(f'Invalid quantity: {value!r}')
    if not number.is_finite() or number != number.to_integral_value():
        raise ValueError(f'Quantity must be a whole number: {value!r}')
    return int(number)
