"""
Decimal coercion and rounding for money, unit costs and quantities.

Money amounts round to cents; unit costs keep four places so that landed
and average costs stay accurate across many receipts.  Rounding is always
ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from stockbook_kernel.exceptions import ValidationError

ZERO = Decimal("0")
MONEY_QUANTUM = Decimal("0.01")
COST_QUANTUM = Decimal("0.0001")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/str/Decimal to Decimal.  Floats go through str()."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"{field} is not a number: {value!r}", field=field) from exc
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)
    return result


def non_negative(value, field: str = "amount") -> Decimal:
    result = to_decimal(value, field)
    if result < ZERO:
        raise ValidationError(f"{field} cannot be negative: {result}", field=field)
    return result


def non_negative_quantity(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative: {value}", field=field)
    return value


def positive_quantity(value, field: str = "quantity") -> int:
    quantity = non_negative_quantity(value, field)
    if quantity == 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)
    return quantity


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_cost(value: Decimal) -> Decimal:
    return value.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)
