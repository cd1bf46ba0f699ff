"""Summary statistics over a reporting window."""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


@dataclass(frozen=True)
class RevenueStatistics:
    """Window statistics in cents.

    Months without revenue are left out of every figure except ``total``.
    """

    average: int = 0
    maximum: int = 0
    minimum: int = 0
    months_with_data: int = 0
    total: int = 0


def compute_statistics(rows: Iterable[Any]) -> RevenueStatistics:
    """Compute statistics from rows carrying a ``total_amount``.

    The average is ``total / months_with_data`` rounded half up.
    """
    amounts = [row.total_amount for row in rows]
    with_data = [amount for amount in amounts if amount > 0]

    if not with_data:
        return RevenueStatistics()

    total = sum(amounts)
    average = (Decimal(total) / Decimal(len(with_data))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    return RevenueStatistics(
        average=int(average),
        maximum=max(with_data),
        minimum=min(with_data),
        months_with_data=len(with_data),
        total=total,
    )
