"""
Deterministic rental pricing.

Pure functions: quote_rental(start, end, price_per_day) -> RentalQuote.
The quote is the only price the system trusts; client-sent totals are never
read. All money math is Decimal, quantized to cents.
"""

import math
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.constants import CENT, MINOR_UNITS_PER_MAJOR
from app.errors import InvalidAmount, InvalidDateRange
from app.models.rental import RentalQuote

_ONE_DAY = timedelta(days=1)


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def rental_days(start: date | datetime, end: date | datetime) -> int:
    """ceil(|end - start| / 1 day). Order of the two dates does not matter."""
    delta = abs(_as_datetime(end) - _as_datetime(start))
    return math.ceil(delta / _ONE_DAY)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Parse a money value. Floats go through str() so 19.99 stays 19.99."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount() from e
    if not amount.is_finite():
        raise InvalidAmount()
    return amount


def quote_rental(
    start: date | datetime,
    end: date | datetime,
    price_per_day: Decimal | int | float | str,
    *,
    allow_same_day: bool = False,
) -> RentalQuote:
    """
    Compute the authoritative days and total for a rental.

    Raises:
        InvalidDateRange: the range covers zero days (same-day rentals are
            rejected unless allow_same_day is set, in which case they bill one day).
        InvalidAmount: the daily rate is not a positive number.
    """
    rate = to_decimal(price_per_day)
    if rate <= 0:
        raise InvalidAmount("Price per day must be positive")

    days = rental_days(start, end)
    if days <= 0:
        if not allow_same_day:
            raise InvalidDateRange("Rental must span at least one day")
        days = 1

    total = (rate * days).quantize(CENT, rounding=ROUND_HALF_UP)
    return RentalQuote(days=days, total=total)


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """round(amount * 100) with half-up rounding, as Stripe expects."""
    value = to_decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
