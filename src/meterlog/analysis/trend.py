"""Coarse trend classification by comparing the two halves of a series."""

from typing import Sequence

from ..models import ChartDataPoint, Trend

# Relative change of the second half over the first that counts as a trend
TREND_THRESHOLD = 0.05


def classify_trend(points: Sequence[ChartDataPoint]) -> Trend:
    """Classify a series as increasing, decreasing or stable.

    The series is split at ``len // 2`` (the middle point of an odd-length
    series belongs to the second half) and the mean kWh of each half is
    compared against 5% of the first half's mean.
    """
    if len(points) < 2:
        return Trend.STABLE

    middle = len(points) // 2
    first_half = points[:middle]
    second_half = points[middle:]

    first_avg = sum(p.kwh for p in first_half) / len(first_half)
    second_avg = sum(p.kwh for p in second_half) / len(second_half)

    difference = second_avg - first_avg
    threshold = first_avg * TREND_THRESHOLD

    if difference > threshold:
        return Trend.INCREASING
    if difference < -threshold:
        return Trend.DECREASING
    return Trend.STABLE
