"""Averaging interval selection for historic data queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from .api import InvalidQueryError
from .const import API_DATE_FORMAT, DEFAULT_INTERVAL_THRESHOLDS, FALLBACK_INTERVAL
from .models import AggregationInterval, QueryWindow

_LOGGER = logging.getLogger(__name__)

Thresholds = tuple[tuple[float, AggregationInterval], ...]


def select_interval(
    window_hours: float,
    thresholds: Thresholds | None = None,
) -> AggregationInterval:
    """Select the averaging interval for a window length.

    The interval gets coarser as the window widens so the number of rows
    stays within the backend's per-request row cap.

    Args:
        window_hours: Length of the queried window in hours.
        thresholds: Ordered ``(max_hours, interval)`` pairs. Windows longer
            than the last bound fall back to one day.

    Returns:
        The averaging interval.

    Raises:
        InvalidQueryError: If the window length is not positive.

    """
    if window_hours <= 0:
        error_msg = f"Invalid time range: window of {window_hours} hours"
        raise InvalidQueryError(error_msg)

    for max_hours, interval in thresholds or DEFAULT_INTERVAL_THRESHOLDS:
        if window_hours <= max_hours:
            return interval
    return FALLBACK_INTERVAL


def validate_thresholds(
    pairs: Iterable[tuple[float, int | AggregationInterval]],
) -> Thresholds:
    """Validate an interval policy and return it in canonical form.

    Args:
        pairs: ``(max_hours, seconds)`` pairs.

    Returns:
        Tuple of ``(max_hours, AggregationInterval)`` pairs.

    Raises:
        ValueError: If the bounds are not strictly increasing, the intervals
            get finer as windows widen, or a value is not a known interval.

    """
    result: list[tuple[float, AggregationInterval]] = []
    for max_hours, seconds in pairs:
        bound = float(max_hours)
        interval = AggregationInterval(int(seconds))
        if bound <= 0:
            error_msg = f"Threshold must be positive, got {bound}"
            raise ValueError(error_msg)
        if result and bound <= result[-1][0]:
            error_msg = f"Threshold {bound} is not greater than {result[-1][0]}"
            raise ValueError(error_msg)
        if result and interval < result[-1][1]:
            error_msg = f"Interval {interval.name} is finer than {result[-1][1].name}"
            raise ValueError(error_msg)
        result.append((bound, interval))

    if result and result[-1][1] > FALLBACK_INTERVAL:
        error_msg = f"Interval {result[-1][1].name} is coarser than the fallback"
        raise ValueError(error_msg)
    return tuple(result)


def validate_window(window: QueryWindow) -> None:
    """Reject inverted, empty or mixed-timezone windows.

    Raises:
        InvalidQueryError: If the window is unusable.

    """
    if (window.start.tzinfo is None) != (window.end.tzinfo is None):
        error_msg = "Invalid time range: start and end mix naive and aware datetimes"
        raise InvalidQueryError(error_msg)
    if window.end <= window.start:
        error_msg = (
            f"Invalid time range: start date {window.start} "
            f"must be before end date {window.end}"
        )
        raise InvalidQueryError(error_msg)


def format_api_datetime(value: datetime) -> str:
    """Format a datetime the way the backend expects ``sdate``/``edate``."""
    return value.strftime(API_DATE_FORMAT)


def historic_params(
    sensor_id: str,
    window: QueryWindow,
    thresholds: Thresholds | None = None,
) -> dict[str, str]:
    """Build the query parameters of a historic data request."""
    interval = select_interval(window.hours, thresholds)
    _LOGGER.debug(
        "Selected averaging interval %s for %.1f hour window on sensor %s",
        interval.name,
        window.hours,
        sensor_id,
    )
    return {
        "id": sensor_id,
        "avg": str(int(interval)),
        "sdate": format_api_datetime(window.start),
        "edate": format_api_datetime(window.end),
    }
