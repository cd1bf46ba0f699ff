"""At-most-once execution of invoice events keyed by event id."""

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import structlog
from redis.asyncio import Redis

logger = structlog.get_logger()

T = TypeVar("T")


class IdempotencyStore(Protocol):
    """Records which event ids have been claimed for processing."""

    async def claim(self, event_id: str) -> bool:
        """Atomically mark ``event_id`` as taken. False if it already was."""
        ...

    async def release(self, event_id: str) -> None:
        """Forget a claim so the event can be processed again."""
        ...


class InMemoryIdempotencyStore:
    """Process-local store holding at most ``max_entries`` claims.

    Claims are kept in insertion order; once the store is full the oldest
    claim is forgotten, so a very late redelivery of that event is treated as
    new. This is the in-process counterpart of the Redis store's TTL.
    """

    def __init__(self, max_entries: int = 100_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._claimed: OrderedDict[str, None] = OrderedDict()
        self._lock = asyncio.Lock()

    async def claim(self, event_id: str) -> bool:
        async with self._lock:
            if event_id in self._claimed:
                return False
            self._claimed[event_id] = None
            while len(self._claimed) > self.max_entries:
                self._claimed.popitem(last=False)
            return True

    async def release(self, event_id: str) -> None:
        async with self._lock:
            self._claimed.pop(event_id, None)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)


class RedisIdempotencyStore:
    """Store shared across processes, backed by ``SET NX EX``.

    A claim expires after ``ttl_seconds``; a redelivery after that is treated
    as a new event.
    """

    def __init__(self, redis: Redis, *, key_prefix: str, ttl_seconds: int) -> None:
        self.redis = redis
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, event_id: str) -> str:
        return f"{self.key_prefix}:{event_id}"

    async def claim(self, event_id: str) -> bool:
        claimed = await self.redis.set(self._key(event_id), "1", nx=True, ex=self.ttl_seconds)
        return bool(claimed)

    async def release(self, event_id: str) -> None:
        await self.redis.delete(self._key(event_id))


@dataclass(frozen=True)
class IdempotentResult(Generic[T]):
    """Whether the guarded call ran, and what it returned if so."""

    executed: bool
    result: T | None = None


async def with_idempotency(
    store: IdempotencyStore,
    event_id: str | None,
    fn: Callable[[], Awaitable[T]],
) -> IdempotentResult[T]:
    """Run ``fn`` unless ``event_id`` was already claimed.

    The claim is taken before ``fn`` runs so concurrent duplicates cannot both
    execute. If ``fn`` raises (or is cancelled) the claim is released and the
    exception propagates, leaving the event eligible for retry. Events without
    an id are always executed.
    """
    if event_id is None:
        return IdempotentResult(executed=True, result=await fn())

    if not await store.claim(event_id):
        logger.info("event_already_processed", event_id=event_id)
        return IdempotentResult(executed=False)

    try:
        result = await fn()
    except BaseException:
        await store.release(event_id)
        raise

    return IdempotentResult(executed=True, result=result)
