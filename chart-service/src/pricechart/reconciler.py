"""Series Reconciler for the price chart.

Merges the caller's historical series, the live price, future predictions
and the actual prices observed for earlier predictions into one ordered
series, and scores the predictions that have since been confirmed.

A pass runs these steps:
1. Refresh the last historical point with the live price
2. Truncate predictions to the timeframe's capacity
3. Concatenate history and predictions
4. Replace predicted slots with observed actual prices and score them
5. Sort by time and collapse slots sharing the same instant
6. Bridge the first predicted point to the last actual price
7. Tally correct/incorrect verdicts
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from .models import (
    AccuracyTally,
    ActualObservation,
    FuturePrediction,
    PredictionAccuracy,
    ReconciliationResult,
    TimePoint,
    Timeframe,
    max_points_for,
)
from .sources import ActualObservationSource, FuturePredictionSource, MarketSnapshotSource
from .timematch import MATCH_TOLERANCE, find_matching_slot, parse_timestamp

logger = logging.getLogger(__name__)

# Live price drift tolerated before the last historical point is overwritten
PRICE_REFRESH_THRESHOLD = 0.01

# Relative error under which a prediction counts as correct
ACCURACY_THRESHOLD = 0.05

_MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)


def judge_prediction(
    predicted: float | None,
    actual: float,
    threshold: float = ACCURACY_THRESHOLD,
) -> PredictionAccuracy | None:
    """Score a prediction against the price that actually happened.

    Returns:
        CORRECT if the relative error is under ``threshold``, INCORRECT
        otherwise, None if there was no prediction to score
    """
    if predicted is None:
        return None
    if actual == 0:
        correct = predicted == 0
    else:
        correct = abs(predicted - actual) / abs(actual) < threshold
    return PredictionAccuracy.CORRECT if correct else PredictionAccuracy.INCORRECT


def tally_accuracy(series: Iterable[TimePoint]) -> AccuracyTally:
    """Count correct and incorrect verdicts across a series."""
    correct = incorrect = 0
    for point in series:
        if point.prediction_accuracy is PredictionAccuracy.CORRECT:
            correct += 1
        elif point.prediction_accuracy is PredictionAccuracy.INCORRECT:
            incorrect += 1
    return AccuracyTally(correct=correct, incorrect=incorrect)


def _merge_slots(kept: TimePoint, other: TimePoint) -> TimePoint:
    """Fold a second point for the same instant into the first one."""
    if kept.is_actual:
        return kept
    if other.is_actual:
        return other.copy(time=kept.time)
    return kept.copy(
        actual_price=kept.actual_price if kept.actual_price is not None else other.actual_price,
        predicted_price=kept.predicted_price if kept.predicted_price is not None else other.predicted_price,
        confidence=kept.confidence if kept.confidence is not None else other.confidence,
    )


class SeriesReconciler:
    """Builds the chart series from history, live price and predictions.

    ``reconcile`` is pure and works on already fetched inputs. ``run_pass``
    fetches the inputs through the collaborator sources first and falls
    back to the unchanged history when any fetch fails.
    """

    def __init__(
        self,
        market_source: MarketSnapshotSource | None = None,
        prediction_source: FuturePredictionSource | None = None,
        observation_source: ActualObservationSource | None = None,
        tolerance: timedelta = MATCH_TOLERANCE,
    ):
        """Initialize the reconciler.

        Args:
            market_source: Provides the current quote for an instrument
            prediction_source: Provides future predicted points
            observation_source: Provides actual prices for predicted slots
            tolerance: Maximum timestamp distance for approximate matching
        """
        self.market_source = market_source
        self.prediction_source = prediction_source
        self.observation_source = observation_source
        self.tolerance = tolerance

    def run_pass(
        self,
        symbol: str,
        timeframe: "str | Timeframe",
        base_series: Sequence[TimePoint],
    ) -> ReconciliationResult:
        """Fetch fresh inputs and reconcile them. Never raises.

        Args:
            symbol: Instrument symbol, e.g. "BTC"
            timeframe: Selected chart timeframe
            base_series: Historical points supplied by the caller

        Returns:
            The reconciled result, or a degraded passthrough of ``base_series``
        """
        try:
            tf = Timeframe.parse(timeframe)
            market_data = self.market_source.get_market_data([symbol])
            current_price = float((market_data[0].get("current_price") if market_data else 0) or 0)

            logger.debug(f"Generating predictions for {symbol} with timeframe {tf.value}")
            predictions = self.prediction_source.get_future_predictions(symbol, tf)
            logger.debug(f"Received {len(predictions)} predictions for {tf.value}")

            observations = self.observation_source.get_actual_observations(symbol, tf)
            return self.reconcile(base_series, current_price, predictions, observations, tf)
        except Exception as e:
            logger.error(
                f"Reconciliation pass failed for {symbol}, passing history through: {e}",
                exc_info=True,
            )
            return self.passthrough(base_series)

    @staticmethod
    def passthrough(base_series: Sequence[TimePoint]) -> ReconciliationResult:
        """Result used when the inputs could not be fetched."""
        return ReconciliationResult(
            series=list(base_series),
            tally=AccuracyTally(),
            future=[],
            degraded=True,
        )

    def reconcile(
        self,
        base_series: Sequence[TimePoint],
        current_price: float,
        future_points: Sequence[FuturePrediction],
        actual_observations: Sequence[ActualObservation],
        timeframe: "str | Timeframe",
    ) -> ReconciliationResult:
        """Merge already fetched inputs into one chart series.

        The caller's ``base_series`` is not modified.
        """
        base = self.refresh_tail([p.copy() for p in base_series], current_price)
        future = self.truncate_future(future_points, timeframe)

        combined = base + future
        if actual_observations:
            self.apply_observations(combined, actual_observations)

        combined = self.sort_slots(combined)
        self.bridge_transition(combined)
        tally = tally_accuracy(combined)

        logger.debug(
            "Reconciliation complete",
            extra={
                "timeframe": str(getattr(timeframe, "value", timeframe)),
                "base_points": len(base),
                "future_points": len(future),
                "series_points": len(combined),
                "correct": tally.correct,
                "incorrect": tally.incorrect,
            },
        )

        return ReconciliationResult(series=combined, tally=tally, future=future)

    @staticmethod
    def refresh_tail(base: list[TimePoint], current_price: float) -> list[TimePoint]:
        """Overwrite the last point's price when the live price has drifted.

        The point is updated when it has no price or differs from
        ``current_price`` by more than 1%. A non-positive live price is
        treated as unavailable.
        """
        if not base or not current_price or current_price <= 0:
            return base

        last = base[-1]
        if (
            last.actual_price is None
            or abs(last.actual_price - current_price) > current_price * PRICE_REFRESH_THRESHOLD
        ):
            base[-1] = last.copy(actual_price=current_price)
        return base

    @staticmethod
    def truncate_future(
        future_points: Sequence[FuturePrediction],
        timeframe: "str | Timeframe",
    ) -> list[TimePoint]:
        """Keep the first N predictions for the timeframe as chart points."""
        limit = max_points_for(timeframe)
        return [
            TimePoint(
                time=prediction.time,
                actual_price=None,
                predicted_price=prediction.price,
                confidence=prediction.confidence,
            )
            for prediction in future_points[:limit]
        ]

    def apply_observations(
        self,
        combined: list[TimePoint],
        observations: Iterable[ActualObservation],
    ) -> int:
        """Replace matched slots with actual prices, in place.

        Observations that match no slot are dropped. When several
        observations land on the same slot the last one wins, and it is
        scored against the prediction the slot originally held.

        Returns:
            Number of replacements made
        """
        # Replacements keep the slot time, so the parsed times stay aligned
        parsed_times = [parse_timestamp(point.time) for point in combined]
        original_predictions: dict[int, float | None] = {}
        replaced = 0
        dropped = 0

        for observation in observations:
            index = find_matching_slot(combined, observation.time, self.tolerance, parsed_times)
            if index is None:
                dropped += 1
                continue

            slot = combined[index]
            if index in original_predictions:
                logger.warning(
                    f"Observation at {observation.time} overwrites slot {slot.time} "
                    "already resolved in this pass"
                )
            else:
                original_predictions[index] = slot.predicted_price
            predicted = original_predictions[index]

            combined[index] = TimePoint(
                time=slot.time,
                actual_price=observation.price,
                predicted_price=None,
                confidence=slot.confidence,
                is_actual=True,
                prediction_accuracy=judge_prediction(predicted, observation.price),
            )
            replaced += 1

        logger.debug(
            f"Replaced {replaced} predictions with actual data, dropped {dropped} unmatched"
        )
        return replaced

    @staticmethod
    def sort_slots(points: Iterable[TimePoint]) -> list[TimePoint]:
        """Sort by parsed time and collapse points that share an instant.

        Points whose time cannot be parsed keep their relative order at the
        end of the series.
        """
        keyed = []
        for point in points:
            parsed = parse_timestamp(point.time)
            keyed.append((parsed, point))
        keyed.sort(key=lambda item: (item[0] is None, item[0] or _MIN_TIME))

        result: list[TimePoint] = []
        previous_key: object = object()
        for parsed, point in keyed:
            key = parsed if parsed is not None else point.time
            if result and key == previous_key:
                result[-1] = _merge_slots(result[-1], point)
                continue
            result.append(point)
            previous_key = key
        return result

    @staticmethod
    def bridge_transition(series: list[TimePoint]) -> int | None:
        """Give the first predicted point the last actual price, in place.

        Returns:
            Index of the transition point, or None if there is none
        """
        for index, point in enumerate(series):
            if point.actual_price is None and point.predicted_price is not None:
                if index == 0:
                    return None
                last_actual = series[index - 1].actual_price
                if last_actual is not None:
                    series[index] = point.copy(actual_price=last_actual)
                return index
        return None
