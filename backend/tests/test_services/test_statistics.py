"""Tests for window statistics."""

from dataclasses import dataclass

from ledger.services.revenue.statistics import RevenueStatistics, compute_statistics


@dataclass
class Row:
    total_amount: int


class TestComputeStatistics:
    """Test statistics over monthly totals."""

    def test_empty_input(self) -> None:
        """Test no rows gives all-zero statistics."""
        assert compute_statistics([]) == RevenueStatistics()

    def test_all_zero_months(self) -> None:
        """Test a window with no revenue gives all-zero statistics."""
        assert compute_statistics([Row(0)] * 12) == RevenueStatistics()

    def test_zero_months_excluded(self) -> None:
        """Test months without revenue are excluded from max, min and average."""
        rows = [Row(0), Row(10000), Row(0), Row(30000), Row(20000)]

        stats = compute_statistics(rows)

        assert stats.maximum == 30000
        assert stats.minimum == 10000
        assert stats.months_with_data == 3
        assert stats.total == 60000
        assert stats.average == 20000

    def test_average_rounds_half_up(self) -> None:
        """Test the average is rounded half up to whole cents."""
        assert compute_statistics([Row(1), Row(2)]).average == 2
        assert compute_statistics([Row(1), Row(1), Row(2)]).average == 1
        assert compute_statistics([Row(5), Row(0), Row(0), Row(10)]).average == 8

    def test_single_month(self) -> None:
        """Test one month with revenue is its own max, min and average."""
        stats = compute_statistics([Row(0), Row(4200)])
        assert stats == RevenueStatistics(average=4200, maximum=4200, minimum=4200, months_with_data=1, total=4200)
