"""Price chart API endpoints.

This module provides FastAPI endpoints for the live price chart:
- POST /api/chart/select - Select instrument, timeframe and base series
- POST /api/chart/refresh - Run one extra reconciliation pass
- GET /api/chart/series - Get the currently published series
- POST /api/chart/stop - Stop the live feed
- POST /api/chart/reconcile - Reconcile caller-supplied inputs once
- GET /api/chart/timeframes - List supported timeframes
- WS /api/chart/stream - Real-time WebSocket updates
"""

import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .feed import LiveSeriesFeed
from .models import ActualObservation, FuturePrediction, TimePoint, Timeframe
from .reconciler import SeriesReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chart", tags=["Chart"])

_feed: LiveSeriesFeed | None = None


def set_feed(feed: LiveSeriesFeed | None) -> None:
    """Set the live feed served by these endpoints."""
    global _feed
    _feed = feed


def get_feed() -> LiveSeriesFeed:
    if _feed is None:
        raise HTTPException(status_code=500, detail="Chart feed not initialized")
    return _feed


class ChartPoint(BaseModel):
    """A chart point as exchanged with the frontend."""
    time: str
    price: float | None = None
    predicted: float | None = None
    confidence: float | None = None
    isActual: bool = False
    predictionAccuracy: str | None = None

    def to_time_point(self) -> TimePoint:
        return TimePoint.from_dict(self.model_dump())


class PricePoint(BaseModel):
    time: str
    price: float
    confidence: float | None = None


class SelectRequest(BaseModel):
    """Request to (re)start the live feed."""
    symbol: str = Field(description="Instrument symbol, e.g. BTC")
    timeframe: str = Field(default="1D", description="One of 1H, 1D, 7D, 1M, 3M, 1Y")
    base_series: list[ChartPoint] = Field(
        default_factory=list,
        description="Historical points to build on",
    )


class ReconcileRequest(BaseModel):
    """Inputs for a single stateless reconciliation pass."""
    timeframe: str = Field(default="1D")
    current_price: float = Field(default=0.0)
    base_series: list[ChartPoint] = Field(default_factory=list)
    future_points: list[PricePoint] = Field(default_factory=list)
    actual_observations: list[PricePoint] = Field(default_factory=list)


def _parse_timeframe(value: str) -> Timeframe:
    try:
        return Timeframe.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/timeframes")
async def list_timeframes():
    """List the supported timeframes and how many predictions each keeps."""
    return {
        "timeframes": [
            {
                "value": tf.value,
                "max_points": tf.max_points,
                "step_seconds": int(tf.step.total_seconds()),
                "horizon_seconds": int(tf.horizon.total_seconds()),
            }
            for tf in Timeframe
        ]
    }


@router.post("/select")
async def select_series(request: SelectRequest):
    """Point the live feed at an instrument and timeframe.

    The base series is published immediately; reconciled data follows
    once the first pass completes and then every refresh interval.
    """
    feed = get_feed()
    timeframe = _parse_timeframe(request.timeframe)
    handle = feed.select(
        request.symbol,
        timeframe,
        [p.to_time_point() for p in request.base_series],
    )
    return {
        "status": "started",
        "selection_id": handle.selection_id,
        "symbol": request.symbol.upper(),
        "timeframe": timeframe.value,
        "interval_seconds": feed.interval_seconds,
    }


@router.post("/refresh")
async def refresh_series():
    """Run one reconciliation pass now and return the published snapshot."""
    feed = get_feed()
    try:
        task = feed.refresh()
    except RuntimeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    published = await task
    return {"published": published, **feed.snapshot().to_dict()}


@router.get("/series")
async def get_series():
    """Get the series and accuracy tally currently published."""
    feed = get_feed()
    return {"running": feed.running, **feed.snapshot().to_dict()}


@router.post("/stop")
async def stop_series():
    """Stop the live feed."""
    feed = get_feed()
    feed.stop()
    return {"status": "stopped"}


@router.post("/reconcile")
async def reconcile_once(request: ReconcileRequest):
    """Reconcile caller-supplied inputs without fetching anything."""
    timeframe = _parse_timeframe(request.timeframe)
    result = SeriesReconciler().reconcile(
        [p.to_time_point() for p in request.base_series],
        request.current_price,
        [FuturePrediction(time=p.time, price=p.price, confidence=p.confidence) for p in request.future_points],
        [ActualObservation(time=p.time, price=p.price) for p in request.actual_observations],
        timeframe,
    )
    return {"timeframe": timeframe.value, **result.to_dict()}


@router.websocket("/stream")
async def stream_updates(websocket: WebSocket):
    """WebSocket endpoint for live chart updates."""
    await websocket.accept()

    if _feed is None or not _feed.running:
        await websocket.send_json({
            "type": "error",
            "message": "No chart feed running",
        })
        await websocket.close()
        return

    try:
        async for update in _feed.stream_updates():
            await websocket.send_json({
                "type": "series_update",
                "data": update,
            })
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
