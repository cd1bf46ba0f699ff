"""Rolling month templates and merging stored rows into them."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

import structlog
from dateutil.relativedelta import relativedelta

from ledger.core.config import settings
from ledger.models.revenue import CalculationSource
from ledger.services.revenue.periods import month_end, resolve_period

logger = structlog.get_logger()

MONTH_ORDER = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

PeriodDuration = Literal["year", "month"]

_DURATION_MONTHS: dict[str, int] = {"year": 12, "month": 1}


@dataclass(frozen=True)
class RollingMonth:
    """One slot of a reporting window."""

    display_order: int
    year: int
    month_number: int
    period: date

    @property
    def month(self) -> str:
        return MONTH_ORDER[self.month_number - 1]


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date
    months: int


@dataclass(frozen=True)
class MonthlyRevenue:
    """A template slot filled with stored totals (or zeros)."""

    display_order: int
    year: int
    month_number: int
    month: str
    period: date
    invoice_count: int
    total_amount: int
    total_paid_amount: int
    total_pending_amount: int
    calculation_source: str


def _month_count(duration: PeriodDuration | int) -> int:
    if isinstance(duration, str):
        if duration not in _DURATION_MONTHS:
            raise ValueError(f"Unknown duration {duration!r}, expected 'year' or 'month'")
        return _DURATION_MONTHS[duration]
    if isinstance(duration, bool) or duration <= 0:
        raise ValueError(f"Invalid interval count: {duration!r}")
    return duration


def generate_months_template(start: Any, duration: PeriodDuration | int = "year") -> list[RollingMonth]:
    """Consecutive months starting at ``start``'s month.

    ``duration`` is ``"year"`` (12 months), ``"month"`` (1) or a positive
    month count.
    """
    first = resolve_period(start)
    count = _month_count(duration)

    template = []
    for index in range(count):
        period = first + relativedelta(months=index)
        template.append(
            RollingMonth(
                display_order=index,
                year=period.year,
                month_number=period.month,
                period=period,
            )
        )

    if not template:
        raise ValueError("Generated template is empty")
    return template


def calculate_date_range(today: date, months: int | None = None) -> DateRange:
    """Window of ``months`` months ending with the month containing ``today``."""
    count = settings.ROLLING_WINDOW_MONTHS if months is None else months
    if count <= 0:
        raise ValueError(f"Invalid interval count: {count!r}")
    current = resolve_period(today)
    return DateRange(
        start_date=current - relativedelta(months=count - 1),
        end_date=month_end(current),
        months=count,
    )


def rolling_window(today: date, months: int | None = None) -> list[RollingMonth]:
    """Template for the window ending at ``today``'s month, oldest first."""
    date_range = calculate_date_range(today, months)
    return generate_months_template(date_range.start_date, date_range.months)


def merge_data_with_template(rows: Iterable[Any], template: Sequence[RollingMonth]) -> list[MonthlyRevenue]:
    """Map every template slot to its stored row, or to zeros when absent.

    The result always has the template's length and order. Rows outside the
    template are ignored.
    """
    by_period = {}
    for row in rows:
        period = row.period
        if period in by_period:
            logger.warning("duplicate_revenue_period", period=str(period))
            continue
        by_period[period] = row

    merged = []
    for slot in template:
        row = by_period.get(slot.period)
        merged.append(
            MonthlyRevenue(
                display_order=slot.display_order,
                year=slot.year,
                month_number=slot.month_number,
                month=slot.month,
                period=slot.period,
                invoice_count=row.invoice_count if row is not None else 0,
                total_amount=row.total_amount if row is not None else 0,
                total_paid_amount=row.total_paid_amount if row is not None else 0,
                total_pending_amount=row.total_pending_amount if row is not None else 0,
                calculation_source=row.calculation_source if row is not None else CalculationSource.TEMPLATE.value,
            )
        )
    return merged
