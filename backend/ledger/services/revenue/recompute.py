"""Administrative rebuild and removal of a period's aggregate."""

from collections.abc import Iterable
from datetime import date
from typing import Any

import structlog

from ledger.core.audit import AuditAction, audit_log
from ledger.core.errors import InvalidPeriodError, RevenueNotFoundError
from ledger.models.revenue import CalculationSource
from ledger.services.revenue.arithmetic import RevenueTotals, add_invoice
from ledger.services.revenue.eligibility import is_eligible
from ledger.services.revenue.events import InvoiceSnapshot
from ledger.services.revenue.periods import format_period, resolve_period
from ledger.services.revenue.repository import RepositoryScope

logger = structlog.get_logger()


def totals_from_invoices(period: date, invoices: Iterable[InvoiceSnapshot]) -> RevenueTotals:
    """Sum the eligible invoices of one period from scratch.

    Raises:
        InvalidPeriodError: if an invoice is dated outside ``period``.
    """
    totals = RevenueTotals()
    for invoice in invoices:
        invoice_period = resolve_period(invoice.invoice_date)
        if invoice_period != period:
            raise InvalidPeriodError(
                invoice.invoice_date,
                f"invoice {invoice.id} belongs to {format_period(invoice_period)}, not {format_period(period)}",
            )
        if is_eligible(invoice.status):
            totals = add_invoice(totals, invoice.amount, invoice.status)
    return totals


async def recompute_period(
    repository_scope: RepositoryScope,
    period_value: Any,
    invoices: Iterable[InvoiceSnapshot],
    *,
    actor: str = "admin",
) -> tuple[int, RevenueTotals]:
    """Replace a period's totals with ones rebuilt from its full invoice list.

    Creates the aggregate if the period has none. Returns the aggregate id
    and the stored totals.
    """
    period = resolve_period(period_value)
    totals = totals_from_invoices(period, invoices)

    async with repository_scope() as repository:
        existing = await repository.find_by_period(period, for_update=True)
        if existing is None:
            revenue = await repository.create(period, totals, CalculationSource.MANUAL_RECOMPUTE)
        else:
            revenue = await repository.update(existing.id, totals, CalculationSource.MANUAL_RECOMPUTE)
        revenue_id = revenue.id

    logger.info("revenue_period_recomputed", period=format_period(period), revenue_id=revenue_id, **totals.as_dict())
    audit_log(
        action=AuditAction.AGGREGATE_RECOMPUTE,
        actor=actor,
        resource_type="revenue",
        resource_id=revenue_id,
        details={"period": format_period(period), **totals.as_dict()},
    )
    return revenue_id, totals


async def delete_period(repository_scope: RepositoryScope, period_value: Any, *, actor: str = "admin") -> int:
    """Remove a period's aggregate. Returns the deleted id.

    Raises:
        RevenueNotFoundError: if the period has no aggregate.
    """
    period = resolve_period(period_value)

    async with repository_scope() as repository:
        existing = await repository.find_by_period(period, for_update=True)
        if existing is None:
            raise RevenueNotFoundError(period=period)
        revenue_id = existing.id
        await repository.delete(revenue_id)

    audit_log(
        action=AuditAction.AGGREGATE_DELETE,
        actor=actor,
        resource_type="revenue",
        resource_id=revenue_id,
        details={"period": format_period(period)},
    )
    return revenue_id
