# core/utils.py

"""
Central monetary and calendar utilities for the fees engine.

Every amount that leaves this package is rounded with round2 (half-up,
2 decimal places). Every due date and payment date is a calendar date in
UTC; time-of-day is never part of interest arithmetic.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, timedelta, timezone as dt_timezone
import logging
import math
import re
import uuid

from dateutil.relativedelta import relativedelta
from django.utils import timezone

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')
BALANCE_TOLERANCE = Decimal('0.01')
DAYS_IN_YEAR = Decimal('365')

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# =============================================================================
# MONEY
# =============================================================================

def get_base_currency():
    """
    Currency code for assessed fees and payments.

    Example:
        >>> get_base_currency()
        'INR'
    """
    from django.conf import settings
    return getattr(settings, 'DEFAULT_CURRENCY', 'INR')


def to_decimal(value, default=None):
    """
    Coerce an int, float, str or Decimal into a Decimal.

    Floats go through str() so 0.1 becomes Decimal('0.1') rather than its
    binary expansion. Booleans, NaN and infinities are rejected.

    Returns:
        Decimal or ``default`` when the value is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return default
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    else:
        return default
    if not result.is_finite():
        return default
    return result


def round2(value):
    """
    Round to 2 decimal places, half away from zero.

    Idempotent: round2(round2(x)) == round2(x).

    Example:
        >>> round2(Decimal('2219.178'))
        Decimal('2219.18')
        >>> round2('0.005')
        Decimal('0.01')
    """
    amount = to_decimal(value)
    if amount is None:
        raise ValueError(f"Cannot round non-numeric amount: {value!r}")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def money_out(value):
    """Render a Decimal for JSON output as a 2dp float."""
    if value is None:
        return None
    return float(round2(value))


def is_settled(balance):
    """A balance at or under one paisa counts as fully paid."""
    return round2(balance) <= BALANCE_TOLERANCE


def format_money(amount, currency='INR'):
    """
    Format an amount for receipts and log lines.

    Example:
        >>> format_money(Decimal('152219.18'))
        'INR 152,219.18'
    """
    amount_decimal = round2(amount or 0)
    return f"{currency} {amount_decimal:,.2f}"


# =============================================================================
# CALENDAR DATES
# =============================================================================

def today_utc():
    """The current calendar date in UTC."""
    return as_date(timezone.now())


def as_date(value):
    """Strip time-of-day from a datetime (after converting to UTC) or pass a date through."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = value.astimezone(dt_timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def parse_date_only(value):
    """
    Parse a ``YYYY-MM-DD`` string (or pass a date through).

    The whole string must be a calendar date; timestamps, week dates and
    trailing text are rejected.

    Returns:
        date or None when the value does not name a real calendar date.
    """
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return as_date(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not _DATE_ONLY_RE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        # well-formed but impossible, e.g. 2024-02-30
        return None


def _roll_forward(start, delta):
    first = date(start.year, start.month, 1) + delta
    return first + timedelta(days=start.day - 1)


def add_months(start, months):
    """
    Add calendar months to a date.

    Month-end overflow rolls into the following month
    (2023-08-31 + 6 months -> 2024-03-02).
    """
    return _roll_forward(as_date(start), relativedelta(months=months))


def add_years(start, years):
    """Add calendar years to a date; 29 February rolls over to 1 March."""
    return _roll_forward(as_date(start), relativedelta(years=years))


def days_between(start, end):
    """
    Whole calendar days from ``start`` to ``end``, never negative.

    Example:
        >>> days_between(date(2024, 7, 1), date(2024, 8, 15))
        45
    """
    delta = (as_date(end) - as_date(start)).days
    return max(0, delta)


def iso_date(value):
    """Format a date as ``YYYY-MM-DD`` (None passes through)."""
    if value is None:
        return None
    return as_date(value).isoformat()


# =============================================================================
# IDENTIFIERS
# =============================================================================

def parse_uuid(value):
    """Return a UUID for ``value`` or None when it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None
