"""Which invoice statuses count toward revenue."""

from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice statuses the ledger knows about."""

    PAID = "paid"
    PENDING = "pending"
    CANCELLED = "cancelled"


ELIGIBLE_STATUSES = frozenset({InvoiceStatus.PAID.value, InvoiceStatus.PENDING.value})

_BUCKETS = {
    InvoiceStatus.PAID.value: "total_paid_amount",
    InvoiceStatus.PENDING.value: "total_pending_amount",
}


def _normalize(status: str | InvoiceStatus | None) -> str | None:
    if isinstance(status, InvoiceStatus):
        return status.value
    return status


def is_eligible(status: str | InvoiceStatus | None) -> bool:
    """Return True for statuses that contribute revenue.

    Unknown or missing statuses are ineligible rather than an error.
    """
    return _normalize(status) in ELIGIBLE_STATUSES


def revenue_bucket(status: str | InvoiceStatus | None) -> str | None:
    """Name of the sub-total field an eligible status feeds, or None."""
    return _BUCKETS.get(_normalize(status))  # type: ignore[arg-type]
