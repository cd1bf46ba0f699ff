"""Revenue ledger API endpoints."""

from datetime import date, datetime
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.core.errors import InvalidPeriodError, PersistenceError, RevenueNotFoundError
from ledger.db.session import get_db
from ledger.services.revenue.events import InvoiceSnapshot
from ledger.services.revenue.handler import RevenueEventHandler
from ledger.services.revenue.periods import resolve_period
from ledger.services.revenue.recompute import delete_period, recompute_period
from ledger.services.revenue.reporting import (
    RevenueReportingService,
    RevenueStatisticsDto,
    SimpleRevenueDto,
)
from ledger.services.revenue.repository import SqlAlchemyRevenueRepository

router = APIRouter(prefix="/api/v1/revenue", tags=["revenue"])
logger = structlog.get_logger()


def get_event_handler(request: Request) -> RevenueEventHandler:
    """The process-wide handler created at startup."""
    return request.app.state.revenue_event_handler


def get_reporting_service(db: AsyncSession = Depends(get_db)) -> RevenueReportingService:
    return RevenueReportingService(SqlAlchemyRevenueRepository(db))


EventHandler = Annotated[RevenueEventHandler, Depends(get_event_handler)]
ReportingService = Annotated[RevenueReportingService, Depends(get_reporting_service)]


class RevenueResponse(BaseModel):
    """A stored aggregate, amounts in cents."""

    id: int
    period: date
    invoice_count: int
    total_amount: int
    total_paid_amount: int
    total_pending_amount: int
    calculation_source: str
    updated_at: datetime | None = None


class CoverageResponse(BaseModel):
    duplicates: list[str]
    invalid_format: list[str]
    missing: list[str]
    unexpected: list[str]
    bad_revenue: list[str]
    is_clean: bool


class EventResultResponse(BaseModel):
    outcome: str
    event_type: str
    event_id: str | None = None
    invoice_id: str | None = None
    period: date | None = None
    change_type: str | None = None
    revenue_id: int | None = None
    error: str | None = None


class RecomputeRequest(BaseModel):
    invoices: list[InvoiceSnapshot]


class RecomputeResponse(BaseModel):
    revenue_id: int
    period: date
    invoice_count: int
    total_amount: int
    total_paid_amount: int
    total_pending_amount: int


def _http_error(error: InvalidPeriodError | RevenueNotFoundError | PersistenceError) -> HTTPException:
    """Translate a ledger error into the matching HTTP error."""
    if isinstance(error, InvalidPeriodError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, RevenueNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    logger.error("revenue_store_unavailable", error=str(error), exc_info=error)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Revenue store unavailable")


@router.post("/events", response_model=EventResultResponse, status_code=status.HTTP_202_ACCEPTED)
async def receive_invoice_event(
    handler: EventHandler,
    payload: dict[str, Any] = Body(...),
) -> EventResultResponse:
    """Apply one invoice lifecycle event.

    Always accepted: events that cannot be applied are recorded as failed
    and reported in ``outcome``.
    """
    result = await handler.handle_payload(payload)
    return EventResultResponse(
        outcome=result.outcome.value,
        event_type=result.event_type,
        event_id=result.event_id,
        invoice_id=result.invoice_id,
        period=result.period,
        change_type=result.change_type.value if result.change_type else None,
        revenue_id=result.revenue_id,
        error=result.error,
    )


@router.get("/rolling-year", response_model=list[SimpleRevenueDto])
async def get_rolling_year(service: ReportingService) -> list[SimpleRevenueDto]:
    """Revenue for each month of the rolling window, oldest first."""
    try:
        return await service.get_rolling_year_revenues()
    except (InvalidPeriodError, PersistenceError) as e:
        raise _http_error(e) from e


@router.get("/statistics", response_model=RevenueStatisticsDto)
async def get_statistics(
    service: ReportingService,
    months: int | None = Query(None, ge=1, le=120, description="Window size in months"),
) -> RevenueStatisticsDto:
    """Average, maximum, minimum and total over the window."""
    try:
        return await service.get_revenue_statistics(months=months)
    except (InvalidPeriodError, PersistenceError) as e:
        raise _http_error(e) from e


@router.get("/coverage", response_model=CoverageResponse)
async def get_coverage(
    service: ReportingService,
    months: int | None = Query(None, ge=1, le=120, description="Window size in months"),
) -> CoverageResponse:
    """Which months of the window are missing, duplicated or malformed."""
    try:
        report = await service.get_coverage_report(months=months)
    except (InvalidPeriodError, PersistenceError) as e:
        raise _http_error(e) from e
    return CoverageResponse(
        duplicates=report.duplicates,
        invalid_format=report.invalid_format,
        missing=report.missing,
        unexpected=report.unexpected,
        bad_revenue=report.bad_revenue,
        is_clean=report.is_clean,
    )


@router.get("/periods/{period}", response_model=RevenueResponse)
async def get_period(period: str, service: ReportingService) -> RevenueResponse:
    """The stored aggregate for one month (``YYYY-MM`` or ``YYYY-MM-DD``)."""
    try:
        revenue = await service.get_revenue_by_period(period)
    except (InvalidPeriodError, RevenueNotFoundError, PersistenceError) as e:
        raise _http_error(e) from e
    return RevenueResponse.model_validate(revenue, from_attributes=True)


@router.post("/periods/{period}/recompute", response_model=RecomputeResponse)
async def recompute(period: str, request: RecomputeRequest, handler: EventHandler) -> RecomputeResponse:
    """Rebuild one month's totals from its complete invoice list."""
    try:
        revenue_id, totals = await recompute_period(handler.repository_scope, period, request.invoices)
    except (InvalidPeriodError, PersistenceError) as e:
        raise _http_error(e) from e

    logger.info("revenue_recompute_requested", period=period, invoices=len(request.invoices))
    return RecomputeResponse(
        revenue_id=revenue_id,
        period=resolve_period(period),
        **totals.as_dict(),
    )


@router.delete("/periods/{period}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_period(period: str, handler: EventHandler) -> Response:
    """Delete one month's aggregate."""
    try:
        await delete_period(handler.repository_scope, period)
    except (InvalidPeriodError, RevenueNotFoundError, PersistenceError) as e:
        raise _http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
