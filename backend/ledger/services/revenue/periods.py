"""Calendar-month period resolution.

A period is the first day of a calendar month, stored as a ``date``. Every
aggregate, template row and report is keyed by one.
"""

import re
from calendar import monthrange
from datetime import date, datetime
from typing import Any

from ledger.core.config import settings
from ledger.core.errors import InvalidPeriodError

# "2025-3", "2025-03", "2025-03-15", "2025-03-15T10:00:00Z"
_PERIOD_PATTERN = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})(?:-(?P<day>\d{1,2})(?:[T ].*)?)?$")
_CANONICAL_PATTERN = re.compile(r"^\d{4}-\d{2}-01$")


def period_from_parts(
    year: int,
    month: int,
    *,
    min_year: int | None = None,
    max_year: int | None = None,
) -> date:
    """Build the period for ``year``/``month`` after range checks."""
    lower = settings.PERIOD_MIN_YEAR if min_year is None else min_year
    upper = settings.PERIOD_MAX_YEAR if max_year is None else max_year

    if not 1 <= month <= 12:
        raise InvalidPeriodError((year, month), f"month {month} is outside 1..12")
    if not lower <= year <= upper:
        raise InvalidPeriodError((year, month), f"year {year} is outside {lower}..{upper}")

    return date(year, month, 1)


def resolve_period(
    value: Any,
    *,
    min_year: int | None = None,
    max_year: int | None = None,
) -> date:
    """Resolve a date-like value to the first day of its month.

    Accepts ``date``/``datetime`` objects, ``(year, month)`` pairs and strings
    of the form ``YYYY-M``, ``YYYY-MM``, ``YYYY-MM-DD`` or an ISO datetime.
    Resolving an already resolved period returns it unchanged.

    Raises:
        InvalidPeriodError: if the value is not a real calendar date or falls
            outside the configured year range.
    """
    if isinstance(value, datetime):
        return period_from_parts(value.year, value.month, min_year=min_year, max_year=max_year)

    if isinstance(value, date):
        return period_from_parts(value.year, value.month, min_year=min_year, max_year=max_year)

    if isinstance(value, tuple) and len(value) == 2:
        year, month = value
        if not isinstance(year, int) or not isinstance(month, int) or isinstance(year, bool) or isinstance(month, bool):
            raise InvalidPeriodError(value, "year and month must be integers")
        return period_from_parts(year, month, min_year=min_year, max_year=max_year)

    if isinstance(value, str):
        match = _PERIOD_PATTERN.match(value.strip())
        if match is None:
            raise InvalidPeriodError(value, "expected YYYY-MM or YYYY-MM-DD")

        year = int(match["year"])
        month = int(match["month"])
        period = period_from_parts(year, month, min_year=min_year, max_year=max_year)

        if match["day"] is not None:
            day = int(match["day"])
            if not 1 <= day <= monthrange(year, month)[1]:
                raise InvalidPeriodError(value, f"day {day} does not exist in {year}-{month:02d}")

        return period

    raise InvalidPeriodError(value, f"unsupported type {type(value).__name__}")


def is_valid_period(value: Any) -> bool:
    """Whether ``value`` already has the canonical period shape (day 1 of a month)."""
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return value.day == 1
    if isinstance(value, str):
        if not _CANONICAL_PATTERN.match(value):
            return False
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def month_end(period: date) -> date:
    """Last calendar day of the period's month."""
    return period.replace(day=monthrange(period.year, period.month)[1])


def format_period(period: date) -> str:
    """Wire representation of a period (``YYYY-MM-01``)."""
    return period.replace(day=1).isoformat()
