"""Price chart - merges history, live price and predictions into one series.

Reconciles actual and predicted prices for charting and keeps the result
fresh for the selected instrument and timeframe.
"""

from .models import (
    AccuracyTally,
    ActualObservation,
    FuturePrediction,
    PredictionAccuracy,
    ReconciliationResult,
    TimePoint,
    Timeframe,
)
from .timematch import MATCH_TOLERANCE, find_matching_slot, parse_timestamp, within_tolerance
from .reconciler import SeriesReconciler, judge_prediction, tally_accuracy
from .sources import (
    BackendFuturePredictionSource,
    StoreActualObservationSource,
    StoreMarketSnapshotSource,
)
from .feed import FeedHandle, FeedSnapshot, LiveSeriesFeed

__all__ = [
    # Models
    "AccuracyTally",
    "ActualObservation",
    "FuturePrediction",
    "PredictionAccuracy",
    "ReconciliationResult",
    "TimePoint",
    "Timeframe",
    # Matching
    "MATCH_TOLERANCE",
    "find_matching_slot",
    "parse_timestamp",
    "within_tolerance",
    # Reconciliation
    "SeriesReconciler",
    "judge_prediction",
    "tally_accuracy",
    # Sources
    "BackendFuturePredictionSource",
    "StoreActualObservationSource",
    "StoreMarketSnapshotSource",
    # Feed
    "FeedHandle",
    "FeedSnapshot",
    "LiveSeriesFeed",
]
