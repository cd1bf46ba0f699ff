"""Tests for Revenue model."""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.models.revenue import CalculationSource, Revenue


class TestRevenueModel:
    """Test Revenue model creation and constraints."""

    @pytest.mark.asyncio
    async def test_create_revenue_defaults(self, test_session: AsyncSession) -> None:
        """Test a new aggregate starts at zero with the event source."""
        revenue = Revenue(period=date(2025, 3, 1))
        test_session.add(revenue)
        await test_session.commit()
        await test_session.refresh(revenue)

        assert revenue.id is not None
        assert revenue.invoice_count == 0
        assert revenue.total_amount == 0
        assert revenue.total_paid_amount == 0
        assert revenue.total_pending_amount == 0
        assert revenue.calculation_source == CalculationSource.INVOICE_EVENT.value
        assert revenue.created_at is not None
        assert revenue.updated_at is not None

    @pytest.mark.asyncio
    async def test_period_unique_constraint(self, test_session: AsyncSession) -> None:
        """Test only one aggregate may exist per period."""
        test_session.add(Revenue(period=date(2025, 3, 1)))
        await test_session.commit()

        test_session.add(Revenue(period=date(2025, 3, 1)))
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_negative_invoice_count_rejected(self, test_session: AsyncSession) -> None:
        """Test the invoice count cannot go below zero at the database level."""
        test_session.add(Revenue(period=date(2025, 3, 1), invoice_count=-1))
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_query_by_period(self, test_session: AsyncSession) -> None:
        """Test aggregates are retrievable by period."""
        test_session.add_all([Revenue(period=date(2025, month, 1), total_amount=month) for month in (1, 2, 3)])
        await test_session.commit()

        result = await test_session.execute(select(Revenue).where(Revenue.period == date(2025, 2, 1)))
        revenue = result.scalar_one()

        assert revenue.total_amount == 2
        assert "2025-02-01" in repr(revenue)
