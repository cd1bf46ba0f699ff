"""Storage of monthly revenue aggregates."""

from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger.core.errors import DuplicatePeriodError, PersistenceError, RevenueNotFoundError
from ledger.models.revenue import CalculationSource, Revenue
from ledger.services.revenue.arithmetic import RevenueTotals


class RevenueRepository(Protocol):
    """Async access to revenue aggregates.

    Implementations raise ``PersistenceError`` for storage failures and
    ``RevenueNotFoundError`` when an id does not exist.
    """

    async def find_by_period(self, period: date, *, for_update: bool = False) -> Revenue | None: ...

    async def find_by_date_range(self, start: date, end: date) -> Sequence[Revenue]: ...

    async def create(
        self,
        period: date,
        totals: RevenueTotals,
        calculation_source: CalculationSource = CalculationSource.INVOICE_EVENT,
    ) -> Revenue: ...

    async def update(
        self,
        revenue_id: int,
        totals: RevenueTotals,
        calculation_source: CalculationSource | None = None,
    ) -> Revenue: ...

    async def delete(self, revenue_id: int) -> None: ...


RepositoryScope = Callable[[], AbstractAsyncContextManager[RevenueRepository]]
"""Opens one transaction and yields a repository bound to it."""


class SqlAlchemyRevenueRepository:
    """RevenueRepository over an AsyncSession. The caller owns the transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_period(self, period: date, *, for_update: bool = False) -> Revenue | None:
        query = select(Revenue).where(Revenue.period == period)
        if for_update:
            query = query.with_for_update()
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load revenue for {period.isoformat()}") from e
        return result.scalar_one_or_none()

    async def find_by_date_range(self, start: date, end: date) -> Sequence[Revenue]:
        query = select(Revenue).where(Revenue.period >= start, Revenue.period <= end).order_by(Revenue.period.asc())
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load revenue between {start.isoformat()} and {end.isoformat()}") from e
        return result.scalars().all()

    async def create(
        self,
        period: date,
        totals: RevenueTotals,
        calculation_source: CalculationSource = CalculationSource.INVOICE_EVENT,
    ) -> Revenue:
        revenue = Revenue(period=period, calculation_source=calculation_source.value, **totals.as_dict())
        self.session.add(revenue)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicatePeriodError(period) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create revenue for {period.isoformat()}") from e
        return revenue

    async def update(
        self,
        revenue_id: int,
        totals: RevenueTotals,
        calculation_source: CalculationSource | None = None,
    ) -> Revenue:
        revenue = await self._get(revenue_id)
        for field, value in totals.as_dict().items():
            setattr(revenue, field, value)
        if calculation_source is not None:
            revenue.calculation_source = calculation_source.value
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update revenue {revenue_id}") from e
        return revenue

    async def delete(self, revenue_id: int) -> None:
        revenue = await self._get(revenue_id)
        try:
            await self.session.delete(revenue)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete revenue {revenue_id}") from e

    async def _get(self, revenue_id: int) -> Revenue:
        try:
            revenue = await self.session.get(Revenue, revenue_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load revenue {revenue_id}") from e
        if revenue is None:
            raise RevenueNotFoundError(revenue_id=revenue_id)
        return revenue


def sqlalchemy_repository_scope(session_factory: async_sessionmaker[AsyncSession]) -> RepositoryScope:
    """Build a RepositoryScope that commits on success and rolls back on error."""

    @asynccontextmanager
    async def scope() -> AsyncIterator[RevenueRepository]:
        async with session_factory() as session:
            try:
                async with session.begin():
                    yield SqlAlchemyRevenueRepository(session)
            except SQLAlchemyError as e:
                raise PersistenceError("Revenue transaction failed") from e

    return scope
