"""Apply invoice lifecycle events to monthly revenue aggregates."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.core.audit import AuditAction, audit_log
from ledger.core.config import settings
from ledger.core.errors import DuplicatePeriodError, EventValidationError
from ledger.models.revenue import CalculationSource
from ledger.services.revenue.arithmetic import (
    RevenueTotals,
    add_invoice,
    change_amount,
    move_between_buckets,
    remove_invoice,
)
from ledger.services.revenue.changes import ChangeType, detect_change
from ledger.services.revenue.dead_letter import (
    DeadLetterSink,
    FailedEvent,
    LoggingDeadLetterSink,
    RedisDeadLetterSink,
)
from ledger.services.revenue.eligibility import is_eligible
from ledger.services.revenue.events import (
    InvoiceCreatedEvent,
    InvoiceDeletedEvent,
    InvoiceUpdatedEvent,
    parse_invoice_event,
)
from ledger.services.revenue.idempotency import (
    IdempotencyStore,
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
    with_idempotency,
)
from ledger.services.revenue.periods import format_period, resolve_period
from ledger.services.revenue.repository import RepositoryScope, sqlalchemy_repository_scope

logger = structlog.get_logger()

InvoiceEventModel = InvoiceCreatedEvent | InvoiceUpdatedEvent | InvoiceDeletedEvent

# One retry after losing a race to create the same period
_MAX_APPLY_ATTEMPTS = 2


class EventOutcome(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(frozen=True)
class EventResult:
    """What happened to one invoice event."""

    outcome: EventOutcome
    event_type: str
    event_id: str | None = None
    invoice_id: str | None = None
    period: date | None = None
    change_type: ChangeType | None = None
    revenue_id: int | None = None
    totals: RevenueTotals | None = None
    error: str | None = None


@dataclass(frozen=True)
class _Mutation:
    """A pending change to one period's totals.

    ``on_missing`` builds the first totals when the period has no aggregate
    yet; without it the event leaves a missing period alone.
    """

    apply: Callable[[RevenueTotals], RevenueTotals]
    on_missing: Callable[[RevenueTotals], RevenueTotals] | None = None


class RevenueEventHandler:
    """Keeps revenue aggregates in step with invoice events.

    Each event is applied at most once per idempotency store, inside a single
    transaction that locks the period's row. Failures never propagate to the
    caller: they are logged, recorded in the dead-letter sink and reported in
    the returned ``EventResult``.
    """

    def __init__(
        self,
        repository_scope: RepositoryScope,
        idempotency_store: IdempotencyStore,
        dead_letters: DeadLetterSink,
    ) -> None:
        self.repository_scope = repository_scope
        self.idempotency_store = idempotency_store
        self.dead_letters = dead_letters
        self.logger = logger.bind(component="revenue_event_handler")

    async def handle_payload(self, payload: Any) -> EventResult:
        """Validate a raw event payload and handle it.

        Anything that is not a mapping is reported as a failed ``unknown`` event.
        """
        try:
            event = parse_invoice_event(payload)
        except EventValidationError as e:
            if not isinstance(payload, Mapping):
                return await self._fail(e, event_type="unknown")
            event_id = payload.get("eventId", payload.get("event_id"))
            return await self._fail(
                e,
                event_type=str(payload.get("type", "unknown")),
                event_id=str(event_id) if event_id is not None else None,
                payload=dict(payload),
            )
        return await self.handle(event)

    async def handle(self, event: InvoiceEventModel) -> EventResult:
        """Apply one validated event."""
        if isinstance(event, InvoiceCreatedEvent):
            return await self.handle_invoice_created(event)
        if isinstance(event, InvoiceUpdatedEvent):
            return await self.handle_invoice_updated(event)
        return await self.handle_invoice_deleted(event)

    async def handle_invoice_created(self, event: InvoiceCreatedEvent) -> EventResult:
        return await self._process(
            event,
            resolve=lambda: self._plan_created(event),
            invoice_date=event.invoice.invoice_date,
        )

    async def handle_invoice_updated(self, event: InvoiceUpdatedEvent) -> EventResult:
        return await self._process(
            event,
            resolve=lambda: self._plan_updated(event),
            invoice_date=event.invoice.invoice_date,
        )

    async def handle_invoice_deleted(self, event: InvoiceDeletedEvent) -> EventResult:
        return await self._process(
            event,
            resolve=lambda: self._plan_deleted(event),
            invoice_date=event.invoice.invoice_date,
        )

    @staticmethod
    def _plan_created(event: InvoiceCreatedEvent) -> tuple[ChangeType | None, _Mutation | None]:
        invoice = event.invoice
        if not is_eligible(invoice.status):
            return None, None

        def add(totals: RevenueTotals) -> RevenueTotals:
            return add_invoice(totals, invoice.amount, invoice.status)

        return None, _Mutation(add, on_missing=add)

    @staticmethod
    def _plan_updated(event: InvoiceUpdatedEvent) -> tuple[ChangeType | None, _Mutation | None]:
        previous, current = event.previous_invoice, event.invoice
        change = detect_change(previous, current)

        def add_current(totals: RevenueTotals) -> RevenueTotals:
            return add_invoice(totals, current.amount, current.status)

        if change is ChangeType.INELIGIBLE_TO_ELIGIBLE:
            mutation = _Mutation(add_current, on_missing=add_current)
        elif change is ChangeType.ELIGIBLE_TO_INELIGIBLE:
            mutation = _Mutation(lambda totals: remove_invoice(totals, previous.amount, previous.status))
        elif change is ChangeType.ELIGIBLE_STATUS_CHANGE:
            # No aggregate to move within: record the invoice as it is now
            mutation = _Mutation(
                lambda totals: move_between_buckets(totals, previous.amount, previous.status, current.status),
                on_missing=add_current,
            )
        elif change is ChangeType.ELIGIBLE_AMOUNT_CHANGE:
            mutation = _Mutation(lambda totals: change_amount(totals, previous.amount, current.amount, current.status))
        else:
            return change, None

        return change, mutation

    @staticmethod
    def _plan_deleted(event: InvoiceDeletedEvent) -> tuple[ChangeType | None, _Mutation | None]:
        invoice = event.invoice
        if not is_eligible(invoice.status):
            return None, None
        return None, _Mutation(lambda totals: remove_invoice(totals, invoice.amount, invoice.status))

    async def _process(
        self,
        event: InvoiceEventModel,
        *,
        resolve: Callable[[], tuple[ChangeType | None, _Mutation | None]],
        invoice_date: Any,
    ) -> EventResult:
        log = self.logger.bind(event_type=event.type, event_id=event.event_id, invoice_id=event.invoice.id)
        context: dict[str, Any] = {}

        async def run() -> EventResult:
            period = resolve_period(invoice_date)
            context["period"] = period
            change, mutation = resolve()
            context["change_type"] = change

            if mutation is None:
                log.debug("revenue_event_unchanged", period=format_period(period), change_type=_value(change))
                return EventResult(
                    outcome=EventOutcome.UNCHANGED,
                    event_type=event.type,
                    event_id=event.event_id,
                    invoice_id=event.invoice.id,
                    period=period,
                    change_type=change,
                )

            applied = await self._apply(period, mutation, event=event, log=log)
            if applied is None:
                log.info("revenue_aggregate_missing", period=format_period(period), change_type=_value(change))
                return EventResult(
                    outcome=EventOutcome.UNCHANGED,
                    event_type=event.type,
                    event_id=event.event_id,
                    invoice_id=event.invoice.id,
                    period=period,
                    change_type=change,
                )

            revenue_id, totals = applied
            log.info(
                "revenue_event_applied",
                period=format_period(period),
                change_type=_value(change),
                revenue_id=revenue_id,
                **totals.as_dict(),
            )
            return EventResult(
                outcome=EventOutcome.APPLIED,
                event_type=event.type,
                event_id=event.event_id,
                invoice_id=event.invoice.id,
                period=period,
                change_type=change,
                revenue_id=revenue_id,
                totals=totals,
            )

        try:
            guarded = await with_idempotency(self.idempotency_store, event.event_id, run)
        except Exception as e:
            return await self._fail(
                e,
                event_type=event.type,
                event_id=event.event_id,
                invoice_id=event.invoice.id,
                period=context.get("period"),
                change_type=context.get("change_type"),
                payload=event.model_dump(mode="json", by_alias=True),
            )

        if not guarded.executed or guarded.result is None:
            return EventResult(
                outcome=EventOutcome.DUPLICATE,
                event_type=event.type,
                event_id=event.event_id,
                invoice_id=event.invoice.id,
            )
        return guarded.result

    async def _apply(
        self,
        period: date,
        mutation: _Mutation,
        *,
        event: InvoiceEventModel,
        log: Any,
    ) -> tuple[int, RevenueTotals] | None:
        """Read-modify-write one period inside a locked transaction.

        Returns None when the period has no aggregate and the mutation does
        not create one.
        """
        for attempt in range(1, _MAX_APPLY_ATTEMPTS + 1):
            try:
                async with self.repository_scope() as repository:
                    existing = await repository.find_by_period(period, for_update=True)
                    if existing is None:
                        if mutation.on_missing is None:
                            return None
                        totals = mutation.on_missing(RevenueTotals())
                        revenue = await repository.create(period, totals, CalculationSource.INVOICE_EVENT)
                        action = AuditAction.AGGREGATE_CREATE
                    else:
                        totals = mutation.apply(RevenueTotals.from_row(existing))
                        revenue = await repository.update(existing.id, totals, CalculationSource.INVOICE_EVENT)
                        action = AuditAction.AGGREGATE_UPDATE
                    revenue_id = revenue.id
            except DuplicatePeriodError:
                if attempt == _MAX_APPLY_ATTEMPTS:
                    raise
                log.warning("revenue_period_created_concurrently", period=format_period(period), attempt=attempt)
                continue

            audit_log(
                action=action,
                actor=event.event_id or event.type,
                resource_type="revenue",
                resource_id=revenue_id,
                details={"period": format_period(period), "invoice_id": event.invoice.id, **totals.as_dict()},
            )
            return revenue_id, totals

        raise AssertionError("unreachable")

    async def _fail(
        self,
        error: Exception,
        *,
        event_type: str,
        event_id: str | None = None,
        invoice_id: str | None = None,
        period: date | None = None,
        change_type: ChangeType | None = None,
        payload: dict[str, Any] | None = None,
    ) -> EventResult:
        self.logger.error(
            "revenue_event_failed",
            event_type=event_type,
            event_id=event_id,
            invoice_id=invoice_id,
            period=format_period(period) if period else None,
            change_type=_value(change_type),
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )

        failure = FailedEvent(
            event_type=event_type,
            error_type=type(error).__name__,
            error=str(error),
            event_id=event_id,
            invoice_id=invoice_id,
            period=format_period(period) if period else None,
            change_type=_value(change_type),
            payload=payload,
        )
        try:
            await self.dead_letters.record(failure)
        except Exception:
            self.logger.exception("dead_letter_record_failed", event_id=event_id, invoice_id=invoice_id)

        return EventResult(
            outcome=EventOutcome.FAILED,
            event_type=event_type,
            event_id=event_id,
            invoice_id=invoice_id,
            period=period,
            change_type=change_type,
            error=str(error),
        )


def _value(change: ChangeType | None) -> str | None:
    return change.value if change is not None else None


def build_revenue_event_handler(
    session_factory: async_sessionmaker[AsyncSession],
    redis: Redis | None = None,
) -> RevenueEventHandler:
    """Wire a handler from settings.

    ``redis`` is required when either the idempotency or dead-letter backend
    is configured as ``redis``.
    """
    store: IdempotencyStore
    if settings.IDEMPOTENCY_BACKEND == "redis":
        if redis is None:
            raise ValueError("IDEMPOTENCY_BACKEND=redis requires a Redis client")
        store = RedisIdempotencyStore(
            redis,
            key_prefix=settings.IDEMPOTENCY_KEY_PREFIX,
            ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS,
        )
    else:
        store = InMemoryIdempotencyStore(max_entries=settings.IDEMPOTENCY_MEMORY_MAX_ENTRIES)

    dead_letters: DeadLetterSink
    if settings.DEAD_LETTER_BACKEND == "redis":
        if redis is None:
            raise ValueError("DEAD_LETTER_BACKEND=redis requires a Redis client")
        dead_letters = RedisDeadLetterSink(
            redis,
            key=settings.DEAD_LETTER_KEY,
            max_entries=settings.DEAD_LETTER_MAX_ENTRIES,
        )
    else:
        dead_letters = LoggingDeadLetterSink()

    return RevenueEventHandler(sqlalchemy_repository_scope(session_factory), store, dead_letters)
