"""Revenue ledger: keeps monthly aggregates in step with invoice events and reports on them."""

from ledger.services.revenue.arithmetic import RevenueTotals
from ledger.services.revenue.changes import ChangeType, detect_change
from ledger.services.revenue.eligibility import InvoiceStatus, is_eligible
from ledger.services.revenue.events import (
    InvoiceCreatedEvent,
    InvoiceDeletedEvent,
    InvoiceSnapshot,
    InvoiceUpdatedEvent,
    parse_invoice_event,
)
from ledger.services.revenue.handler import (
    EventOutcome,
    EventResult,
    RevenueEventHandler,
    build_revenue_event_handler,
)
from ledger.services.revenue.periods import resolve_period
from ledger.services.revenue.reporting import RevenueReportingService

__all__ = [
    "ChangeType",
    "EventOutcome",
    "EventResult",
    "InvoiceCreatedEvent",
    "InvoiceDeletedEvent",
    "InvoiceSnapshot",
    "InvoiceStatus",
    "InvoiceUpdatedEvent",
    "RevenueEventHandler",
    "RevenueReportingService",
    "RevenueTotals",
    "build_revenue_event_handler",
    "detect_change",
    "is_eligible",
    "parse_invoice_event",
    "resolve_period",
]
