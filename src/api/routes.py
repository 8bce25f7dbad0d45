"""API routes exposing prices, charts, portfolio and pipeline events."""

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_pipeline
from src.api.error_handlers import create_unknown_coin_error, handle_service_error
from src.models.market_data import TimeFrame, coin_display_name
from src.models.portfolio import PortfolioEntry
from src.services.errors import FetchError
from src.services.pipeline import PricePipeline

router = APIRouter()


class PollerStartRequest(BaseModel):
    """Request model for starting the poller."""
    interval_seconds: Optional[int] = Field(None, ge=1)


class AlertThresholdUpdate(BaseModel):
    """Request model for changing the alert threshold."""
    threshold_percent: float = Field(..., ge=1, le=20)


class PortfolioEntryCreate(BaseModel):
    """Request model for adding a holding."""
    coin_id: str
    amount: float = Field(..., gt=0)
    purchase_price: float = Field(..., gt=0)
    purchase_date: Optional[datetime] = None


def _entry_to_dict(entry: PortfolioEntry) -> dict:
    data = asdict(entry)
    data["name"] = coin_display_name(entry.coin_id)
    return data


def _poller_status(pipeline: PricePipeline) -> dict:
    context = pipeline.poller.context
    return {
        "state": pipeline.poller.state.value,
        "interval_seconds": context.interval_seconds,
        "alert_threshold_percent": pipeline.poller.alert_threshold_percent,
        "last_success_at": context.last_success_at,
        "last_failure_reason": context.last_failure_reason,
        "check_streak": context.streak.count,
    }


@router.get("/prices")
async def get_prices(pipeline: PricePipeline = Depends(get_pipeline)):
    """
    Get the latest price map.

    Returns:
        Coins in API order with price, 24h change and alert flag, plus poller status
    """
    threshold = pipeline.poller.alert_threshold_percent
    coins = [
        {
            "coin_id": point.coin_id,
            "name": point.display_name,
            "symbol": point.symbol,
            "price": point.price,
            "change_24h_percent": point.change_24h_percent,
            "alert": abs(point.change_24h_percent) >= threshold,
        }
        for point in pipeline.poller.price_map.values()
    ]
    return {"coins": coins, "count": len(coins), **_poller_status(pipeline)}


@router.post("/poller/start")
async def start_poller(
    start_request: Optional[PollerStartRequest] = None,
    pipeline: PricePipeline = Depends(get_pipeline),
):
    """Start recurring polling; a second start is a no-op."""
    interval = start_request.interval_seconds if start_request else None
    started = pipeline.poller.start(interval)
    return {"started": started, **_poller_status(pipeline)}


@router.post("/poller/stop")
async def stop_poller(pipeline: PricePipeline = Depends(get_pipeline)):
    """Stop recurring polling."""
    stopped = pipeline.poller.stop()
    return {"stopped": stopped, **_poller_status(pipeline)}


@router.post("/poller/refresh")
def refresh_prices(pipeline: PricePipeline = Depends(get_pipeline)):
    """
    Run one poll cycle now.

    Runs in the threadpool because a rate-limited cycle waits between retries.
    """
    updated = pipeline.poller.poll_once()
    return {"updated": updated, **_poller_status(pipeline)}


@router.put("/settings/alert-threshold")
async def update_alert_threshold(
    update: AlertThresholdUpdate,
    pipeline: PricePipeline = Depends(get_pipeline),
):
    """Change the alert threshold (1-20 percent)."""
    try:
        pipeline.poller.alert_threshold_percent = update.threshold_percent
    except ValueError as e:
        raise handle_service_error(e).to_http_exception()
    return {"alert_threshold_percent": pipeline.poller.alert_threshold_percent}


@router.get("/chart/{coin_id}")
def get_chart(
    coin_id: str,
    timeframe: TimeFrame = Query(TimeFrame.DAY, description="1H, 24H, 7D, 30D, 1Y or ALL"),
    force: bool = Query(False, description="Bypass the freshness window"),
    pipeline: PricePipeline = Depends(get_pipeline),
):
    """
    Get the chart series of a tracked coin.

    Served from the cache inside the freshness window. When a refetch fails
    the stale series is returned with ``stale`` set and the upstream reason.
    """
    if coin_id not in pipeline.poller.coin_ids:
        raise create_unknown_coin_error(coin_id).to_http_exception()

    try:
        series = pipeline.chart_cache.get_or_fetch(
            coin_id, force=force, window_days=timeframe.days
        )
    except FetchError as e:
        raise handle_service_error(e).to_http_exception()

    error = pipeline.chart_cache.last_error(coin_id, timeframe.days)
    return {
        "coin_id": coin_id,
        "name": coin_display_name(coin_id),
        "timeframe": timeframe.value,
        "fetched_at": series.fetched_at,
        "points": [list(sample) for sample in zip(series.timestamps, series.prices)],
        "stale": error is not None,
        "error": error.reason if error else None,
    }


@router.get("/portfolio")
async def get_portfolio(pipeline: PricePipeline = Depends(get_pipeline)):
    """Get all holdings, valued at the latest prices, with totals."""
    entries = pipeline.portfolio.entries()
    return {
        "entries": [_entry_to_dict(entry) for entry in entries],
        "summary": asdict(pipeline.portfolio.summary()),
    }


@router.post("/portfolio", status_code=status.HTTP_201_CREATED)
async def add_portfolio_entry(
    entry_data: PortfolioEntryCreate,
    pipeline: PricePipeline = Depends(get_pipeline),
):
    """Add a holding of a tracked coin."""
    try:
        entry = pipeline.portfolio.add_entry(
            coin_id=entry_data.coin_id,
            amount=entry_data.amount,
            purchase_price=entry_data.purchase_price,
            purchase_date=entry_data.purchase_date,
        )
    except ValueError as e:
        raise handle_service_error(e).to_http_exception()
    return _entry_to_dict(entry)


@router.get("/events")
async def get_events(
    limit: int = Query(100, ge=1, le=1000),
    event_type: Optional[str] = Query(None, description="Filter by event type"),
    cycle_id: Optional[str] = Query(None, description="All events of one poll or chart cycle"),
    pipeline: PricePipeline = Depends(get_pipeline),
):
    """Get recent pipeline events, oldest first."""
    store = pipeline.event_store
    store.clear_old_events()
    if cycle_id:
        events = store.get_events_by_cycle(cycle_id)[-limit:]
    elif event_type:
        events = store.get_events_by_type(event_type, limit=limit)
    else:
        events = store.get_recent_events(limit=limit)
    return {"events": [event.to_dict() for event in events], "count": len(events)}


@router.get("/metrics")
async def get_metrics(pipeline: PricePipeline = Depends(get_pipeline)):
    """Get aggregated pipeline metrics."""
    return pipeline.metrics.calculate().to_dict()
