"""Pure arithmetic over a period's revenue totals."""

from dataclasses import asdict, dataclass, replace
from typing import Any

from ledger.services.revenue.eligibility import revenue_bucket


@dataclass(frozen=True)
class RevenueTotals:
    """Count and sums (cents) for one period."""

    invoice_count: int = 0
    total_amount: int = 0
    total_paid_amount: int = 0
    total_pending_amount: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "RevenueTotals":
        return cls(
            invoice_count=row.invoice_count,
            total_amount=row.total_amount,
            total_paid_amount=row.total_paid_amount,
            total_pending_amount=row.total_pending_amount,
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _adjust_bucket(totals: RevenueTotals, status: str, delta: int, *, clamp: bool) -> RevenueTotals:
    field = revenue_bucket(status)
    if field is None:
        return totals
    value = getattr(totals, field) + delta
    if clamp:
        value = max(0, value)
    return replace(totals, **{field: value})


def add_invoice(totals: RevenueTotals, amount: int, status: str) -> RevenueTotals:
    """Count an eligible invoice into the totals."""
    added = replace(
        totals,
        invoice_count=totals.invoice_count + 1,
        total_amount=totals.total_amount + amount,
    )
    return _adjust_bucket(added, status, amount, clamp=False)


def remove_invoice(totals: RevenueTotals, amount: int, status: str) -> RevenueTotals:
    """Take an invoice out of the totals, never going below zero."""
    removed = replace(
        totals,
        invoice_count=max(0, totals.invoice_count - 1),
        total_amount=max(0, totals.total_amount - amount),
    )
    return _adjust_bucket(removed, status, -amount, clamp=True)


def change_amount(totals: RevenueTotals, old_amount: int, new_amount: int, status: str) -> RevenueTotals:
    """Apply an amount edit on an invoice that stays eligible.

    Unlike removal this is not clamped; a negative result means the stored
    totals had already drifted from the invoices.
    """
    delta = new_amount - old_amount
    changed = replace(totals, total_amount=totals.total_amount + delta)
    return _adjust_bucket(changed, status, delta, clamp=False)


def move_between_buckets(totals: RevenueTotals, amount: int, from_status: str, to_status: str) -> RevenueTotals:
    """Shift an invoice's amount from one sub-total to the other.

    Count and overall total are unchanged.
    """
    moved = _adjust_bucket(totals, from_status, -amount, clamp=True)
    return _adjust_bucket(moved, to_status, amount, clamp=False)
