"""Data models for the price chart.

This module defines the core data structures used by the reconciler:
- Timeframe: Horizon/granularity selector for predictions
- TimePoint: One slot of the merged chart series
- FuturePrediction: A predicted price returned by the prediction backend
- ActualObservation: Ground truth for a previously predicted slot
- AccuracyTally: Correct/incorrect counts for one reconciliation pass
- ReconciliationResult: Output of one reconciliation pass
"""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Any

DEFAULT_MAX_POINTS = 20


class Timeframe(str, Enum):
    """Chart timeframes and the prediction horizon they request."""
    ONE_HOUR = "1H"
    ONE_DAY = "1D"
    SEVEN_DAYS = "7D"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    ONE_YEAR = "1Y"

    @property
    def max_points(self) -> int:
        """Maximum number of future points retained for this timeframe."""
        return _TIMEFRAME_TABLE[self][0]

    @property
    def step(self) -> timedelta:
        """Spacing between consecutive future points."""
        return _TIMEFRAME_TABLE[self][1]

    @property
    def horizon(self) -> timedelta:
        """How far into the future (and back into the past) the chart reaches."""
        return _TIMEFRAME_TABLE[self][2]

    @classmethod
    def parse(cls, value: "str | Timeframe") -> "Timeframe":
        """Convert a raw selector ("1h", "3M", ...) into a Timeframe.

        Raises:
            ValueError: If the value is not a known timeframe.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown timeframe: {value!r}") from None


# max_points, step, horizon
_TIMEFRAME_TABLE: dict[Timeframe, tuple[int, timedelta, timedelta]] = {
    Timeframe.ONE_HOUR: (144, timedelta(minutes=5), timedelta(hours=12)),
    Timeframe.ONE_DAY: (24, timedelta(hours=1), timedelta(hours=24)),
    Timeframe.SEVEN_DAYS: (42, timedelta(hours=4), timedelta(days=7)),
    Timeframe.ONE_MONTH: (120, timedelta(hours=6), timedelta(days=30)),
    Timeframe.THREE_MONTHS: (180, timedelta(hours=12), timedelta(days=90)),
    Timeframe.ONE_YEAR: (52, timedelta(weeks=1), timedelta(weeks=52)),
}


def max_points_for(timeframe: "str | Timeframe") -> int:
    """Capacity for a timeframe, falling back to the default for unknown values."""
    try:
        return Timeframe.parse(timeframe).max_points
    except ValueError:
        return DEFAULT_MAX_POINTS


class PredictionAccuracy(str, Enum):
    """Verdict attached to a slot once its actual price is known."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class TimePoint:
    """A single slot of the chart series.

    Attributes:
        time: Timestamp string as delivered by the source
        actual_price: Confirmed market price, if known
        predicted_price: Price forecast by the prediction backend
        confidence: Model confidence in [0, 1] for predicted points
        is_actual: True once the slot was confirmed against market data
        prediction_accuracy: Verdict for the prediction that used to occupy the slot
    """
    time: str
    actual_price: float | None = None
    predicted_price: float | None = None
    confidence: float | None = None
    is_actual: bool = False
    prediction_accuracy: PredictionAccuracy | None = None

    def copy(self, **changes: Any) -> "TimePoint":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the chart's field names, omitting absent values."""
        data: dict[str, Any] = {"time": self.time}
        if self.actual_price is not None:
            data["price"] = self.actual_price
        if self.predicted_price is not None:
            data["predicted"] = self.predicted_price
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.is_actual:
            data["isActual"] = True
        if self.prediction_accuracy is not None:
            data["predictionAccuracy"] = self.prediction_accuracy.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimePoint":
        """Build a point from chart field names or snake_case names."""
        accuracy = data.get("predictionAccuracy", data.get("prediction_accuracy"))
        return cls(
            time=str(data["time"]),
            actual_price=_optional_float(data.get("price", data.get("actual_price"))),
            predicted_price=_optional_float(data.get("predicted", data.get("predicted_price"))),
            confidence=_optional_float(data.get("confidence")),
            is_actual=bool(data.get("isActual", data.get("is_actual", False))),
            prediction_accuracy=PredictionAccuracy(accuracy) if accuracy else None,
        )


@dataclass(frozen=True)
class FuturePrediction:
    """A predicted price for a future slot."""
    time: str
    price: float
    confidence: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FuturePrediction":
        return cls(
            time=str(data["time"]),
            price=float(data["price"]),
            confidence=_optional_float(data.get("confidence")),
        )


@dataclass(frozen=True)
class ActualObservation:
    """The real price observed for a slot that was previously only predicted."""
    time: str
    price: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActualObservation":
        return cls(time=str(data["time"]), price=float(data["price"]))


@dataclass(frozen=True)
class AccuracyTally:
    """Correct/incorrect prediction counts for one reconciliation pass."""
    correct: int = 0
    incorrect: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.incorrect

    @property
    def accuracy(self) -> float | None:
        """Share of correct predictions, or None when nothing was scored."""
        if self.total == 0:
            return None
        return self.correct / self.total

    def to_dict(self) -> dict[str, Any]:
        accuracy = self.accuracy
        return {
            "correct": self.correct,
            "incorrect": self.incorrect,
            "accuracy_pct": round(accuracy * 100, 1) if accuracy is not None else None,
        }


@dataclass
class ReconciliationResult:
    """Output of a reconciliation pass.

    Attributes:
        series: Sorted, gap-free series ready for charting
        tally: Accuracy counts over the series
        future: Future points that were loaded after truncation
        degraded: True when a fetch failed and the base series was passed through
    """
    series: list[TimePoint]
    tally: AccuracyTally = field(default_factory=AccuracyTally)
    future: list[TimePoint] = field(default_factory=list)
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "series": [p.to_dict() for p in self.series],
            "tally": self.tally.to_dict(),
            "future_count": len(self.future),
            "degraded": self.degraded,
        }
