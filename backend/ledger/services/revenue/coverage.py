"""Reconciliation of stored rows against an expected template."""

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from ledger.services.revenue.periods import format_period, is_valid_period


@dataclass(frozen=True)
class CoverageReport:
    """Problems found comparing rows to the template. Periods are ``YYYY-MM-01`` strings."""

    duplicates: list[str] = field(default_factory=list)
    invalid_format: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    unexpected: list[str] = field(default_factory=list)
    bad_revenue: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.duplicates or self.invalid_format or self.missing or self.unexpected or self.bad_revenue)


def _period_key(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _is_bad_amount(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return True
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, Decimal):
        return value.is_nan()
    return False


def build_coverage_report(rows: Iterable[Any], template_periods: Iterable[date]) -> CoverageReport:
    """Compare rows (objects with ``period`` and ``total_amount``) to the expected periods.

    Rows whose period is malformed are reported as ``invalid_format`` only,
    not as unexpected.
    """
    rows = list(rows)
    expected = [format_period(period) for period in template_periods]
    expected_set = set(expected)

    counts = Counter(_period_key(row.period) for row in rows)
    duplicates = sorted(period for period, count in counts.items() if count > 1)

    invalid_format: list[str] = []
    valid: set[str] = set()
    bad_revenue: list[str] = []
    for row in rows:
        key = _period_key(row.period)
        if is_valid_period(row.period):
            valid.add(key)
        elif key not in invalid_format:
            invalid_format.append(key)
        if _is_bad_amount(row.total_amount) and key not in bad_revenue:
            bad_revenue.append(key)

    return CoverageReport(
        duplicates=duplicates,
        invalid_format=sorted(invalid_format),
        missing=[period for period in expected if period not in valid],
        unexpected=sorted(valid - expected_set),
        bad_revenue=sorted(bad_revenue),
    )
