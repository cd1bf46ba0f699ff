"""Where failed invoice events are recorded."""

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from redis.asyncio import Redis

from ledger.core.audit import AuditAction, audit_log

logger = structlog.get_logger()


@dataclass(frozen=True)
class FailedEvent:
    """An invoice event the ledger could not apply."""

    event_type: str
    error_type: str
    error: str
    event_id: str | None = None
    invoice_id: str | None = None
    period: str | None = None
    change_type: str | None = None
    payload: dict[str, Any] | None = None
    failed_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DeadLetterSink(Protocol):
    async def record(self, failure: FailedEvent) -> None: ...


class LoggingDeadLetterSink:
    """Writes failures to the audit log only."""

    async def record(self, failure: FailedEvent) -> None:
        audit_log(
            action=AuditAction.EVENT_DEAD_LETTER,
            resource_type="invoice",
            resource_id=failure.invoice_id,
            details=failure.to_dict(),
            success=False,
        )


class RedisDeadLetterSink:
    """Keeps the most recent failures in a capped Redis list (newest first)."""

    def __init__(self, redis: Redis, *, key: str, max_entries: int) -> None:
        self.redis = redis
        self.key = key
        self.max_entries = max_entries

    async def record(self, failure: FailedEvent) -> None:
        audit_log(
            action=AuditAction.EVENT_DEAD_LETTER,
            resource_type="invoice",
            resource_id=failure.invoice_id,
            details={"event_id": failure.event_id, "error_type": failure.error_type},
            success=False,
        )
        await self.redis.lpush(self.key, json.dumps(failure.to_dict(), default=str))
        await self.redis.ltrim(self.key, 0, self.max_entries - 1)

    async def entries(self, limit: int = 100) -> list[dict[str, Any]]:
        """Most recent failures, newest first."""
        raw = await self.redis.lrange(self.key, 0, limit - 1)
        return [json.loads(item) for item in raw]
