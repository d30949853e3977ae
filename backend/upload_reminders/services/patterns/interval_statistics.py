"""
Interval Statistics

Turns a sorted upload history into interval statistics:
mean, population standard deviation and coefficient of variation of the
day gaps between consecutive uploads.
"""
import math
from datetime import date
from typing import List, Sequence

from ...models.domain import IntervalStatistics


def calculate_intervals(dates: Sequence[date]) -> List[int]:
    """Day deltas between consecutive dates. Input must be ascending."""
    return [(dates[i] - dates[i - 1]).days for i in range(1, len(dates))]


def population_stddev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def compute_interval_statistics(dates: Sequence[date]) -> IntervalStatistics:
    """
    Compute interval statistics for one (document_type, source) history.

    Args:
        dates: Ascending upload dates (at least one element)

    Returns:
        IntervalStatistics. With fewer than 2 dates the interval fields are
        None and the caller must treat the frequency as unknown. CV is None
        when the average interval is 0 (all uploads on the same day).
    """
    if any(dates[i] < dates[i - 1] for i in range(1, len(dates))):
        raise ValueError("Upload dates must be in ascending order")

    count = len(dates)
    if count < 2:
        return IntervalStatistics(count=count)

    intervals = calculate_intervals(dates)
    average = sum(intervals) / len(intervals)
    stddev = population_stddev(intervals)
    cv = stddev / average if average > 0 else None

    return IntervalStatistics(
        count=count,
        average_interval_days=average,
        stddev_interval_days=stddev,
        coefficient_of_variation=cv,
        min_interval_days=min(intervals),
        max_interval_days=max(intervals),
    )
