"""Read-side queries over stored revenue aggregates."""

from datetime import date

import structlog
from pydantic import BaseModel

from ledger.core.config import settings
from ledger.core.errors import RevenueNotFoundError
from ledger.models.revenue import Revenue
from ledger.services.revenue.coverage import CoverageReport, build_coverage_report
from ledger.services.revenue.periods import resolve_period
from ledger.services.revenue.repository import RevenueRepository
from ledger.services.revenue.statistics import compute_statistics
from ledger.services.revenue.template import MonthlyRevenue, merge_data_with_template, rolling_window

logger = structlog.get_logger()


def to_display_units(cents: int) -> float:
    """Convert stored cents to the major currency unit."""
    return round(cents / settings.MINOR_UNITS_PER_MAJOR, 2)


class SimpleRevenueDto(BaseModel):
    """One month of a rolling report, amounts in display units."""

    month: str
    month_number: int
    year: int
    period: date
    invoice_count: int
    total_amount: float
    total_paid_amount: float
    total_pending_amount: float


class RevenueStatisticsDto(BaseModel):
    """Window statistics, amounts in display units."""

    average: float
    maximum: float
    minimum: float
    months_with_data: int
    total: float


class RevenueReportingService:
    """Rolling-window reports built from the repository."""

    def __init__(self, repository: RevenueRepository, *, window_months: int | None = None) -> None:
        self.repository = repository
        self.window_months = settings.ROLLING_WINDOW_MONTHS if window_months is None else window_months
        if self.window_months < 1:
            raise ValueError(f"Invalid interval count: {self.window_months!r}")

    async def calculate_for_rolling_year(
        self,
        today: date | None = None,
        months: int | None = None,
    ) -> list[MonthlyRevenue]:
        """Stored totals for each month of the window, zero-filled where absent."""
        template = rolling_window(today or date.today(), self.window_months if months is None else months)
        rows = await self.repository.find_by_date_range(template[0].period, template[-1].period)

        report = build_coverage_report(rows, [slot.period for slot in template])
        if report.duplicates or report.invalid_format or report.bad_revenue:
            logger.warning(
                "revenue_coverage_problems",
                duplicates=report.duplicates,
                invalid_format=report.invalid_format,
                bad_revenue=report.bad_revenue,
            )

        return merge_data_with_template(rows, template)

    async def get_rolling_year_revenues(self, today: date | None = None) -> list[SimpleRevenueDto]:
        merged = await self.calculate_for_rolling_year(today)
        return [
            SimpleRevenueDto(
                month=month.month,
                month_number=month.month_number,
                year=month.year,
                period=month.period,
                invoice_count=month.invoice_count,
                total_amount=to_display_units(month.total_amount),
                total_paid_amount=to_display_units(month.total_paid_amount),
                total_pending_amount=to_display_units(month.total_pending_amount),
            )
            for month in merged
        ]

    async def get_revenue_statistics(
        self,
        today: date | None = None,
        months: int | None = None,
    ) -> RevenueStatisticsDto:
        merged = await self.calculate_for_rolling_year(today, months)
        stats = compute_statistics(merged)
        return RevenueStatisticsDto(
            average=to_display_units(stats.average),
            maximum=to_display_units(stats.maximum),
            minimum=to_display_units(stats.minimum),
            months_with_data=stats.months_with_data,
            total=to_display_units(stats.total),
        )

    async def get_coverage_report(self, today: date | None = None, months: int | None = None) -> CoverageReport:
        """Compare stored rows to the window without zero-filling."""
        template = rolling_window(today or date.today(), self.window_months if months is None else months)
        rows = await self.repository.find_by_date_range(template[0].period, template[-1].period)
        return build_coverage_report(rows, [slot.period for slot in template])

    async def get_revenue_by_period(self, period_value: object) -> Revenue:
        """The stored aggregate for one period.

        Raises:
            InvalidPeriodError: if the period cannot be resolved.
            RevenueNotFoundError: if no aggregate exists.
        """
        period = resolve_period(period_value)
        revenue = await self.repository.find_by_period(period)
        if revenue is None:
            raise RevenueNotFoundError(period=period)
        return revenue
