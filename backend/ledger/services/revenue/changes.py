"""Classify how an invoice update affects revenue."""

from enum import Enum
from typing import Protocol

from ledger.services.revenue.eligibility import is_eligible


class InvoiceLike(Protocol):
    status: str
    amount: int


class ChangeType(str, Enum):
    """Revenue-relevant difference between two snapshots of one invoice."""

    NONE = "none"
    ELIGIBLE_TO_INELIGIBLE = "eligible-to-ineligible"
    INELIGIBLE_TO_ELIGIBLE = "ineligible-to-eligible"
    ELIGIBLE_STATUS_CHANGE = "eligible-status-change"
    ELIGIBLE_AMOUNT_CHANGE = "eligible-amount-change"


def detect_change(previous: InvoiceLike, current: InvoiceLike) -> ChangeType:
    """Compare two snapshots of the same invoice.

    Rules are checked in order and the first match wins, so a status change
    between paid and pending hides a simultaneous amount change.
    """
    was_eligible = is_eligible(previous.status)
    now_eligible = is_eligible(current.status)

    if was_eligible and not now_eligible:
        return ChangeType.ELIGIBLE_TO_INELIGIBLE
    if not was_eligible and now_eligible:
        return ChangeType.INELIGIBLE_TO_ELIGIBLE
    if was_eligible and now_eligible and previous.status != current.status:
        return ChangeType.ELIGIBLE_STATUS_CHANGE
    if was_eligible and now_eligible and previous.amount != current.amount:
        return ChangeType.ELIGIBLE_AMOUNT_CHANGE
    return ChangeType.NONE
