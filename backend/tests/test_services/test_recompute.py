"""Tests for administrative recompute and delete."""

from collections.abc import Awaitable, Callable
from datetime import date

import pytest

from ledger.core.errors import InvalidPeriodError, RevenueNotFoundError
from ledger.models.revenue import Revenue
from ledger.services.revenue.events import InvoiceCreatedEvent, InvoiceSnapshot
from ledger.services.revenue.handler import RevenueEventHandler
from ledger.services.revenue.recompute import delete_period, recompute_period, totals_from_invoices
from ledger.services.revenue.repository import RepositoryScope

FetchRevenue = Callable[[date], Awaitable[Revenue | None]]

MARCH = date(2025, 3, 1)


def invoice(invoice_id: str, status: str, amount: int, invoice_date: str = "2025-03-10") -> InvoiceSnapshot:
    return InvoiceSnapshot(id=invoice_id, status=status, amount=amount, date=invoice_date)


class TestTotalsFromInvoices:
    """Test rebuilding totals from a full invoice list."""

    def test_sums_eligible_invoices(self) -> None:
        """Test only paid and pending invoices are counted."""
        totals = totals_from_invoices(
            MARCH,
            [invoice("a", "paid", 1000), invoice("b", "pending", 500), invoice("c", "cancelled", 9999)],
        )

        assert totals.invoice_count == 2
        assert totals.total_amount == 1500
        assert totals.total_paid_amount == 1000
        assert totals.total_pending_amount == 500

    def test_rejects_invoice_from_other_month(self) -> None:
        """Test an invoice dated outside the period is rejected."""
        with pytest.raises(InvalidPeriodError, match="belongs to 2025-04-01"):
            totals_from_invoices(MARCH, [invoice("a", "paid", 1000, "2025-04-02")])


class TestRecomputePeriod:
    """Test replacing a period's stored totals."""

    @pytest.mark.asyncio
    async def test_overwrites_drifted_aggregate(
        self,
        event_handler: RevenueEventHandler,
        repository_scope: RepositoryScope,
        fetch_revenue: FetchRevenue,
    ) -> None:
        """Test recompute replaces event-derived totals and marks the source."""
        await event_handler.handle(
            InvoiceCreatedEvent(invoice=InvoiceSnapshot(id="x", status="paid", amount=99999, date="2025-03-01"))
        )

        revenue_id, totals = await recompute_period(repository_scope, "2025-03", [invoice("a", "paid", 1000)])

        revenue = await fetch_revenue(MARCH)
        assert revenue is not None
        assert revenue.id == revenue_id
        assert revenue.total_amount == 1000
        assert revenue.invoice_count == 1
        assert revenue.calculation_source == "manual_recompute"
        assert totals.total_paid_amount == 1000

    @pytest.mark.asyncio
    async def test_creates_missing_aggregate(
        self,
        repository_scope: RepositoryScope,
        fetch_revenue: FetchRevenue,
    ) -> None:
        """Test recompute creates the period when it has no aggregate."""
        await recompute_period(repository_scope, date(2025, 3, 31), [])

        revenue = await fetch_revenue(MARCH)
        assert revenue is not None
        assert revenue.invoice_count == 0


class TestDeletePeriod:
    """Test administrative deletion."""

    @pytest.mark.asyncio
    async def test_deletes_aggregate(
        self,
        repository_scope: RepositoryScope,
        fetch_revenue: FetchRevenue,
    ) -> None:
        """Test the period's row is removed."""
        revenue_id, _ = await recompute_period(repository_scope, "2025-03", [invoice("a", "paid", 1000)])

        deleted_id = await delete_period(repository_scope, "2025-03-01")

        assert deleted_id == revenue_id
        assert await fetch_revenue(MARCH) is None

    @pytest.mark.asyncio
    async def test_missing_period(self, repository_scope: RepositoryScope) -> None:
        """Test deleting a period without an aggregate raises RevenueNotFoundError."""
        with pytest.raises(RevenueNotFoundError):
            await delete_period(repository_scope, "2025-03")
