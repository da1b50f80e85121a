"""Burn data router.

Serves the last good rollups regardless of whether the latest sync worked;
a failed refresh is reported in the body, not as an HTTP error.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import get_session
from ..services.burn_report import BurnReportService
from ..services.context import TrackerContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter()


class DailyBurnPoint(BaseModel):
    """Schema for one chart data point."""
    date: str
    display_date: str
    cumulative_uni: float
    daily_uni: float
    usd_value: Optional[float]
    cumulative_usd_value: Optional[float]
    daily_usd_value: Optional[float]
    uni_price_usd: Optional[float]
    is_live: bool


class DailyBurnsResponse(BaseModel):
    success: bool
    data: List[DailyBurnPoint]
    count: int


class BurnSummaryData(BaseModel):
    total_uni_burned: float
    current_usd_value: Optional[float]
    historical_usd_value: Optional[float]
    today_burns: float
    current_uni_price: Optional[float]
    last_updated: str


class BurnSummaryResponse(BaseModel):
    success: bool
    data: BurnSummaryData


class RefreshData(BaseModel):
    newTransactionCount: int
    totalBurned: float
    currentPrice: Optional[float]
    lastUpdated: str


class RefreshResponse(BaseModel):
    """Schema for a triggered sync."""
    success: bool
    message: str
    data: RefreshData
    error: Optional[str] = None


class SyncStatusResponse(BaseModel):
    state: str
    running: bool
    auto_sync: bool
    last_result: Optional[dict] = None


@router.get("/daily", response_model=DailyBurnsResponse)
async def get_daily_burns(
    session: AsyncSession = Depends(get_session),
    context: TrackerContext = Depends(get_context),
):
    """Daily burn series from the tracked start date."""
    report = BurnReportService(session, context.settings.start_date)
    points = await report.get_daily_series()
    return DailyBurnsResponse(
        success=True,
        data=[DailyBurnPoint(**vars(p)) for p in points],
        count=len(points),
    )


@router.get("/summary", response_model=BurnSummaryResponse)
async def get_burn_summary(
    session: AsyncSession = Depends(get_session),
    context: TrackerContext = Depends(get_context),
):
    """Headline burn statistics, valued at the live price when available."""
    current_price = await context.oracle.get_current_price()
    report = BurnReportService(session, context.settings.start_date)
    summary = await report.get_summary(current_price)
    return BurnSummaryResponse(success=True, data=BurnSummaryData(**summary.to_dict()))


@router.api_route("/refresh", methods=["GET", "POST"], response_model=RefreshResponse)
async def refresh_burns(context: TrackerContext = Depends(get_context)):
    """Trigger a sync and report its outcome."""
    result = await context.sync_service.sync()
    return RefreshResponse(
        success=result.success,
        message=(
            f"Synced {result.new_transaction_count} new transactions"
            if result.success else "Sync failed"
        ),
        data=RefreshData(
            newTransactionCount=result.new_transaction_count,
            totalBurned=result.total_burned,
            currentPrice=result.current_price,
            lastUpdated=result.last_updated,
        ),
        error=result.error,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(context: TrackerContext = Depends(get_context)):
    """Current orchestrator state and the last run's result."""
    service = context.sync_service
    last = service.last_result
    return SyncStatusResponse(
        state=service.state.value,
        running=service.is_running,
        auto_sync=bool(context.scheduler and context.scheduler.is_running),
        last_result=last.to_dict() if last else None,
    )
