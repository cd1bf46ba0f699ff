"""Exception types raised by the revenue ledger."""

from datetime import date


class LedgerError(Exception):
    """Base class for revenue ledger errors."""


class InvalidPeriodError(LedgerError, ValueError):
    """A value could not be resolved to a calendar month."""

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid period {value!r}: {reason}")


class EventValidationError(LedgerError):
    """An inbound invoice event payload is malformed."""


class PersistenceError(LedgerError):
    """The revenue store rejected or failed an operation."""


class DuplicatePeriodError(PersistenceError):
    """An aggregate for the period was created concurrently."""

    def __init__(self, period: date) -> None:
        self.period = period
        super().__init__(f"Revenue aggregate for {period.isoformat()} already exists")


class RevenueNotFoundError(LedgerError):
    """No revenue aggregate exists where one was required."""

    def __init__(self, *, period: date | None = None, revenue_id: int | None = None) -> None:
        self.period = period
        self.revenue_id = revenue_id
        if period is not None:
            message = f"No revenue aggregate for period {period.isoformat()}"
        else:
            message = f"No revenue aggregate with id {revenue_id}"
        super().__init__(message)
