"""Fixed-point helpers for currency and quantity arithmetic."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from publisher_royalties.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

Numeric = Union[Decimal, int, str, float]


def to_decimal(value: Numeric, field: str = "value") -> Decimal:
    """
    Convert user or database input to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Raises:
        ValidationError: if the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got bool", field=field)
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValidationError(f"{field} is not a number: {value!r}", field=field)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValidationError(f"{field} must be numeric, got {type(value).__name__}", field=field)

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)
    return result


def round_currency(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def require_non_negative(value: Numeric, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise ValidationError(f"{field} must be >= 0, got {result}", field=field, value=str(result))
    return result


def require_units(value: int, field: str) -> int:
    """Unit counts are non-negative integers."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer unit count, got {value!r}", field=field)
    if value < 0:
        raise ValidationError(f"{field} must be >= 0, got {value}", field=field, value=value)
    return value
