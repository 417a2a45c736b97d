"""
Decimal-safe money helpers.

Amounts are kept at full Decimal precision through every calculation.
round_money() is for presentation boundaries only (API responses, reports).

Exchange rates are quoted as supplier currency per one unit of base currency,
so converting a supplier-currency amount to base currency is a division.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from dispatchdesk.exceptions import DispatchValidationError

Number = Union[None, int, float, str, Decimal]

EXCHANGE_RATE_ERROR = "Exchange rate must be greater than 0"

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    """
    Normalize user/store input to Decimal.

    - None or "" -> 0
    - floats go through str() so 0.1 stays 0.1
    - anything unparseable -> 0 (same as an empty form field)
    """
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip() or "0")
    except (InvalidOperation, ValueError):
        return _ZERO


def is_valid_exchange_rate(exchange_rate: Number) -> bool:
    if exchange_rate is None:
        return False
    rate = to_decimal(exchange_rate)
    return rate.is_finite() and rate > 0


def require_exchange_rate(exchange_rate: Number) -> Decimal:
    """Return the rate as Decimal or raise DispatchValidationError when it is not > 0."""
    if not is_valid_exchange_rate(exchange_rate):
        raise DispatchValidationError([EXCHANGE_RATE_ERROR])
    return to_decimal(exchange_rate)


def convert(amount: Number, exchange_rate: Number) -> Decimal:
    """Supplier-currency amount -> base currency (amount / exchange_rate)."""
    rate = require_exchange_rate(exchange_rate)
    return to_decimal(amount) / rate


def markup(amount: Number, percentage: Number) -> Decimal:
    """amount x (1 + percentage/100)"""
    return to_decimal(amount) * (1 + to_decimal(percentage) / _HUNDRED)


def round_money(amount: Number, places: int = 2) -> Decimal:
    """Round half-up to `places` decimals. Presentation only."""
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)
