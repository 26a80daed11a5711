"""Timestamp parsing and approximate slot matching.

Sources do not agree on a timestamp format (ISO-8601 with or without a
zone, RFC 2822, epoch milliseconds), so slots are matched by exact string
first and by parsed time within a tolerance second.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from .models import TimePoint

logger = logging.getLogger(__name__)

MATCH_TOLERANCE = timedelta(minutes=30)

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 1e11


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(value: float) -> datetime | None:
    if value > _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a timestamp from any of the formats the sources emit.

    Args:
        value: ISO-8601 or RFC 2822 string, datetime, or epoch number

    Returns:
        Timezone-aware UTC datetime, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    text = str(value).strip()
    if not text:
        return None

    try:
        return _from_epoch(float(text))
    except ValueError:
        pass

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _as_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    try:
        return _as_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparseable timestamp: {text!r}")
        return None


def within_tolerance(
    first: datetime | None,
    second: datetime | None,
    tolerance: timedelta = MATCH_TOLERANCE,
) -> bool:
    """Whether two parsed timestamps are at most ``tolerance`` apart.

    A missing timestamp on either side never matches.
    """
    if first is None or second is None:
        return False
    return abs(first - second) <= tolerance


def find_matching_slot(
    points: Sequence[TimePoint],
    time: str,
    tolerance: timedelta = MATCH_TOLERANCE,
    parsed_times: Sequence[datetime | None] | None = None,
) -> int | None:
    """Locate the slot an observation at ``time`` belongs to.

    Exact string equality wins. Otherwise the slot whose parsed time is
    closest to ``time`` within ``tolerance`` is returned, earliest index
    on ties. This is the nearest slot, not the first one in scan order
    that falls inside the window.

    Args:
        points: Candidate slots
        time: Observation timestamp
        tolerance: Maximum distance for an approximate match
        parsed_times: ``parse_timestamp`` of each slot time, aligned with
            ``points``; parsed on the fly when omitted

    Returns:
        Index into ``points`` or None when nothing matches
    """
    for index, point in enumerate(points):
        if point.time == time:
            return index

    target = parse_timestamp(time)
    if target is None:
        return None

    if parsed_times is None:
        parsed_times = [parse_timestamp(point.time) for point in points]

    best_index: int | None = None
    best_distance: timedelta | None = None
    for index, candidate in enumerate(parsed_times):
        if not within_tolerance(candidate, target, tolerance):
            continue
        distance = abs(candidate - target)
        if best_distance is None or distance < best_distance:
            best_index = index
            best_distance = distance

    return best_index
