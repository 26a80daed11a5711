"""Data sources consumed by the reconciler.

Each source is described by a Protocol so the reconciler can be driven by
the real backends or by in-memory fakes:
- MarketSnapshotSource: current quotes per symbol
- FuturePredictionSource: predicted prices beyond now
- ActualObservationSource: actual prices for earlier predicted slots
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from .models import ActualObservation, FuturePrediction, Timeframe

logger = logging.getLogger(__name__)


class MarketSnapshotSource(Protocol):
    def get_market_data(self, symbols: list[str]) -> list[dict[str, Any]]:
        ...


class FuturePredictionSource(Protocol):
    def get_future_predictions(self, symbol: str, timeframe: Timeframe) -> list[FuturePrediction]:
        ...


class ActualObservationSource(Protocol):
    def get_actual_observations(self, symbol: str, timeframe: Timeframe) -> list[ActualObservation]:
        ...


class StoreMarketSnapshotSource:
    """Reads stored quotes from the ``market_data`` table."""

    def __init__(self, store: Any):
        self.store = store

    def get_market_data(self, symbols: list[str]) -> list[dict[str, Any]]:
        wanted = ",".join(s.upper() for s in symbols)
        rows = self.store.select(
            "market_data",
            filters={"symbol": f"in.({wanted})"},
            order="market_cap.desc",
        )
        logger.debug(f"Loaded {len(rows)} market rows for {wanted}")
        return rows


class BackendFuturePredictionSource:
    """Asks the prediction backend for the future curve of a symbol."""

    def __init__(self, backend: Any):
        self.backend = backend

    def get_future_predictions(self, symbol: str, timeframe: Timeframe) -> list[FuturePrediction]:
        raw = self.backend.predict_future(symbol, timeframe)
        return [FuturePrediction.from_dict(item) for item in raw]


class StoreActualObservationSource:
    """Uses stored OHLC close prices as ground truth for predicted slots.

    Only candles inside the timeframe's horizon, counted back from now,
    are returned.
    """

    def __init__(
        self,
        store: Any,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self._now = now

    def get_actual_observations(self, symbol: str, timeframe: Timeframe) -> list[ActualObservation]:
        since = self._now() - timeframe.horizon
        rows = self.store.select(
            "ohlcv_data",
            columns="timestamp,close_price",
            filters={
                "symbol": f"eq.{symbol.upper()}",
                "timestamp": f"gte.{since.isoformat()}",
            },
            order="timestamp.asc",
        )
        observations = [
            ActualObservation(time=str(row["timestamp"]), price=float(row["close_price"]))
            for row in rows
            if row.get("close_price") is not None
        ]
        logger.debug(f"Loaded {len(observations)} actual observations for {symbol} {timeframe.value}")
        return observations
