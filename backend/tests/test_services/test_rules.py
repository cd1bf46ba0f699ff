"""Tests for eligibility, change detection and aggregate arithmetic."""

from dataclasses import dataclass

import pytest

from ledger.services.revenue.arithmetic import (
    RevenueTotals,
    add_invoice,
    change_amount,
    move_between_buckets,
    remove_invoice,
)
from ledger.services.revenue.changes import ChangeType, detect_change
from ledger.services.revenue.eligibility import InvoiceStatus, is_eligible, revenue_bucket


@dataclass
class Snapshot:
    status: str
    amount: int


class TestEligibility:
    """Test which statuses contribute revenue."""

    def test_paid_and_pending_are_eligible(self) -> None:
        """Test paid and pending invoices count."""
        assert is_eligible("paid")
        assert is_eligible("pending")
        assert is_eligible(InvoiceStatus.PAID)

    @pytest.mark.parametrize("status", ["cancelled", "draft", "PAID", "", None, "refunded"])
    def test_everything_else_is_ineligible(self, status: str | None) -> None:
        """Test unknown statuses fail closed."""
        assert is_eligible(status) is False

    def test_revenue_bucket(self) -> None:
        """Test each eligible status maps to its sub-total."""
        assert revenue_bucket("paid") == "total_paid_amount"
        assert revenue_bucket("pending") == "total_pending_amount"
        assert revenue_bucket("cancelled") is None


class TestDetectChange:
    """Test classification of invoice updates."""

    @pytest.mark.parametrize(
        ("previous", "current", "expected"),
        [
            (Snapshot("paid", 100), Snapshot("cancelled", 100), ChangeType.ELIGIBLE_TO_INELIGIBLE),
            (Snapshot("pending", 100), Snapshot("draft", 300), ChangeType.ELIGIBLE_TO_INELIGIBLE),
            (Snapshot("cancelled", 100), Snapshot("paid", 100), ChangeType.INELIGIBLE_TO_ELIGIBLE),
            (Snapshot("pending", 100), Snapshot("paid", 100), ChangeType.ELIGIBLE_STATUS_CHANGE),
            (Snapshot("paid", 100), Snapshot("paid", 250), ChangeType.ELIGIBLE_AMOUNT_CHANGE),
            (Snapshot("paid", 100), Snapshot("paid", 100), ChangeType.NONE),
            (Snapshot("cancelled", 100), Snapshot("cancelled", 900), ChangeType.NONE),
            (Snapshot("cancelled", 100), Snapshot("draft", 100), ChangeType.NONE),
        ],
    )
    def test_classification(self, previous: Snapshot, current: Snapshot, expected: ChangeType) -> None:
        """Test each pair maps to exactly one change type."""
        assert detect_change(previous, current) is expected

    def test_status_change_wins_over_amount_change(self) -> None:
        """Test a simultaneous status and amount change is reported as a status change."""
        change = detect_change(Snapshot("pending", 5000), Snapshot("paid", 7000))
        assert change is ChangeType.ELIGIBLE_STATUS_CHANGE


class TestArithmetic:
    """Test pure operations on revenue totals."""

    def test_add_invoice(self) -> None:
        """Test adding increments count, total and the status bucket."""
        totals = add_invoice(RevenueTotals(), 5000, "paid")
        assert totals == RevenueTotals(invoice_count=1, total_amount=5000, total_paid_amount=5000)

        totals = add_invoice(totals, 2000, "pending")
        assert totals == RevenueTotals(
            invoice_count=2, total_amount=7000, total_paid_amount=5000, total_pending_amount=2000
        )

    def test_remove_is_inverse_of_add(self) -> None:
        """Test remove after add restores the original totals."""
        start = RevenueTotals(invoice_count=3, total_amount=9000, total_paid_amount=6000, total_pending_amount=3000)
        assert remove_invoice(add_invoice(start, 1234, "pending"), 1234, "pending") == start

    def test_remove_clamps_at_zero(self) -> None:
        """Test removing from an empty or undersized aggregate never goes negative."""
        assert remove_invoice(RevenueTotals(), 5000, "paid") == RevenueTotals()

        totals = remove_invoice(RevenueTotals(invoice_count=1, total_amount=100, total_paid_amount=100), 500, "paid")
        assert totals == RevenueTotals()

    def test_change_amount_is_not_clamped(self) -> None:
        """Test amount changes apply the raw delta, even below zero."""
        totals = RevenueTotals(invoice_count=1, total_amount=5000, total_paid_amount=5000)
        assert change_amount(totals, 5000, 7500, "paid") == RevenueTotals(
            invoice_count=1, total_amount=7500, total_paid_amount=7500
        )

        drifted = change_amount(RevenueTotals(invoice_count=1, total_amount=100, total_pending_amount=100), 500, 0, "pending")
        assert drifted.total_amount == -400
        assert drifted.total_pending_amount == -400
        assert drifted.invoice_count == 1

    def test_move_between_buckets(self) -> None:
        """Test a bucket move keeps count and total and shifts the amount."""
        totals = RevenueTotals(invoice_count=1, total_amount=5000, total_pending_amount=5000)
        moved = move_between_buckets(totals, 5000, "pending", "paid")
        assert moved == RevenueTotals(invoice_count=1, total_amount=5000, total_paid_amount=5000)

    def test_move_clamps_source_bucket(self) -> None:
        """Test the removal side of a bucket move is clamped."""
        totals = RevenueTotals(invoice_count=1, total_amount=5000, total_pending_amount=1000)
        moved = move_between_buckets(totals, 5000, "pending", "paid")
        assert moved.total_pending_amount == 0
        assert moved.total_paid_amount == 5000
        assert moved.total_amount == 5000

    def test_operations_do_not_mutate_input(self) -> None:
        """Test totals are immutable values."""
        totals = RevenueTotals(invoice_count=1, total_amount=100, total_paid_amount=100)
        add_invoice(totals, 100, "paid")
        assert totals.invoice_count == 1


class TestNonNegativity:
    """Test add/remove sequences never drive totals below zero."""

    @pytest.mark.parametrize(
        "steps",
        [
            [("remove", 500, "paid")],
            [("add", 1000, "paid"), ("remove", 1000, "paid"), ("remove", 1000, "paid")],
            [("add", 300, "pending"), ("remove", 900, "pending"), ("add", 200, "paid"), ("remove", 200, "pending")],
            [("add", 100, "paid"), ("add", 100, "paid"), ("remove", 5000, "paid"), ("remove", 1, "paid")],
            [("remove", 1, "pending"), ("add", 0, "pending"), ("remove", 0, "paid"), ("remove", 10, "paid")],
        ],
    )
    def test_totals_stay_non_negative_after_every_step(self, steps: list[tuple[str, int, str]]) -> None:
        """Test count, total and both buckets are non-negative after each operation."""
        totals = RevenueTotals()
        for operation, amount, status in steps:
            if operation == "add":
                totals = add_invoice(totals, amount, status)
            else:
                totals = remove_invoice(totals, amount, status)

            assert totals.invoice_count >= 0
            assert totals.total_amount >= 0
            assert totals.total_paid_amount >= 0
            assert totals.total_pending_amount >= 0
