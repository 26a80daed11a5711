"""Live chart feed.

Keeps the chart series for the selected instrument and timeframe up to
date: a reconciliation pass runs as soon as the selection changes and
then on a fixed interval. Every pass is tagged with a generation number
and only the most recently requested pass may publish its result.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from .models import AccuracyTally, ReconciliationResult, TimePoint, Timeframe
from .reconciler import SeriesReconciler

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 30.0


@dataclass
class FeedSnapshot:
    """The series and tally currently published to the chart."""
    symbol: str | None = None
    timeframe: Timeframe | None = None
    series: list[TimePoint] = field(default_factory=list)
    tally: AccuracyTally = field(default_factory=AccuracyTally)
    future_count: int = 0
    degraded: bool = False
    generation: int = 0
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe.value if self.timeframe else None,
            "series": [p.to_dict() for p in self.series],
            "tally": self.tally.to_dict(),
            "future_count": self.future_count,
            "degraded": self.degraded,
            "generation": self.generation,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class FeedHandle:
    """Handle returned by ``LiveSeriesFeed.select``.

    Stopping a handle only stops the feed if the handle's selection is
    still the active one.
    """

    def __init__(self, feed: "LiveSeriesFeed", selection_id: int):
        self._feed = feed
        self.selection_id = selection_id

    @property
    def active(self) -> bool:
        return self._feed.running and self._feed.selection_id == self.selection_id

    def stop(self) -> None:
        if self.active:
            self._feed.stop()


class LiveSeriesFeed:
    """Schedules reconciliation passes and publishes their results.

    Must be driven from a running asyncio event loop. Passes execute the
    blocking fetches in a worker thread.
    """

    def __init__(
        self,
        reconciler: SeriesReconciler,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL,
    ):
        """Initialize the feed.

        Args:
            reconciler: Reconciler used for every pass
            interval_seconds: Delay between periodic passes
        """
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds

        self._selection: tuple[str, Timeframe, list[TimePoint]] | None = None
        self._selection_id = 0
        self._generation = 0
        self._running = False
        self._timer_task: asyncio.Task | None = None
        self._pass_tasks: set[asyncio.Task] = set()

        self._snapshot = FeedSnapshot()
        self._publish_count = 0
        self._lock = threading.Lock()
        self._update_callbacks: list[Callable[[FeedSnapshot], None]] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def selection_id(self) -> int:
        return self._selection_id

    @property
    def publish_count(self) -> int:
        return self._publish_count

    def snapshot(self) -> FeedSnapshot:
        """Latest published snapshot."""
        with self._lock:
            return self._snapshot

    def add_update_callback(self, callback: Callable[[FeedSnapshot], None]) -> None:
        """Register a callback invoked with every published snapshot."""
        self._update_callbacks.append(callback)

    def select(
        self,
        symbol: str,
        timeframe: "str | Timeframe",
        base_series: Sequence[TimePoint],
    ) -> FeedHandle:
        """Switch the feed to a new instrument, timeframe or base series.

        The base series is published right away, the previous timer is
        cancelled and a new one starts with an immediate pass.

        Raises:
            ValueError: If the timeframe is unknown
        """
        tf = Timeframe.parse(timeframe)
        self._cancel_tasks()

        symbol = symbol.upper()
        base = list(base_series)
        self._selection = (symbol, tf, base)
        self._selection_id += 1
        self._generation += 1
        self._running = True

        self._publish(FeedSnapshot(
            symbol=symbol,
            timeframe=tf,
            series=base,
            generation=self._generation,
            updated_at=datetime.now(timezone.utc),
        ))

        self._timer_task = asyncio.create_task(self._run_periodic())
        logger.info(
            f"Feed selection changed to {symbol} {tf.value}",
            extra={"base_points": len(base), "interval": self.interval_seconds},
        )
        return FeedHandle(self, self._selection_id)

    def refresh(self) -> asyncio.Task:
        """Request one extra pass for the current selection.

        Returns:
            Task resolving to True if the pass published its result

        Raises:
            RuntimeError: If nothing is selected or the feed is stopped
        """
        if self._selection is None or not self._running:
            raise RuntimeError("No instrument selected")

        self._generation += 1
        symbol, tf, base = self._selection
        task = asyncio.create_task(self._run_pass(self._generation, symbol, tf, base))
        self._pass_tasks.add(task)
        task.add_done_callback(self._pass_tasks.discard)
        return task

    def stop(self) -> None:
        """Cancel the timer and every in-flight pass."""
        if not self._running:
            return
        logger.info(f"Stopping feed for selection {self._selection_id}")
        self._running = False
        self._generation += 1
        self._cancel_tasks()

    async def shutdown(self) -> None:
        """Stop the feed and wait for its tasks to unwind."""
        tasks = [t for t in (self._timer_task, *self._pass_tasks) if t is not None]
        self.stop()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def stream_updates(self, poll_interval: float = 0.5) -> AsyncIterator[dict]:
        """Stream published snapshots while the feed is running.

        Yields:
            Dict representation of each new FeedSnapshot
        """
        last_seen = -1
        while True:
            if self._publish_count != last_seen:
                last_seen = self._publish_count
                yield self.snapshot().to_dict()
            if not self._running:
                break
            await asyncio.sleep(poll_interval)

    def _cancel_tasks(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
        for task in list(self._pass_tasks):
            task.cancel()
        self._pass_tasks.clear()

    async def _run_periodic(self) -> None:
        while self._running:
            self.refresh()
            await asyncio.sleep(self.interval_seconds)

    async def _run_pass(
        self,
        generation: int,
        symbol: str,
        timeframe: Timeframe,
        base: list[TimePoint],
    ) -> bool:
        result: ReconciliationResult = await asyncio.to_thread(
            self.reconciler.run_pass, symbol, timeframe, base
        )

        if not self._running or generation != self._generation:
            logger.info(
                f"Discarding stale pass {generation} for {symbol} {timeframe.value} "
                f"(latest is {self._generation})"
            )
            return False

        self._publish(FeedSnapshot(
            symbol=symbol,
            timeframe=timeframe,
            series=result.series,
            tally=result.tally,
            future_count=len(result.future),
            degraded=result.degraded,
            generation=generation,
            updated_at=datetime.now(timezone.utc),
        ))
        return True

    def _publish(self, snapshot: FeedSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._publish_count += 1
        for callback in self._update_callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Error in update callback: {e}")
