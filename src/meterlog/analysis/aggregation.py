"""Group chart points into daily, weekly and monthly buckets."""

from datetime import date, timedelta
from typing import Iterable

from ..models import ChartDataPoint, Period, TimeSeriesData
from ..money import total
from .trend import classify_trend


def week_start(day: date) -> date:
    """Monday of the ISO 8601 week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)


def bucket_key(day: date, period: Period) -> str:
    """Aggregation key for a day: ISO date, Monday of its week, or YYYY-MM."""
    period = Period(period)
    if period == Period.DAILY:
        return day.isoformat()
    if period == Period.WEEKLY:
        return week_start(day).isoformat()
    return f"{day.year:04d}-{day.month:02d}"


def aggregate(points: Iterable[ChartDataPoint], period: Period) -> list[TimeSeriesData]:
    """Summarise chart points per bucket, in order of first appearance.

    ``average_daily`` divides by the number of points in the bucket, not the
    number of calendar days it spans.
    """
    grouped: dict[str, list[ChartDataPoint]] = {}
    for point in points:
        key = bucket_key(date.fromisoformat(point.date), period)
        grouped.setdefault(key, []).append(point)

    series = []
    for key, members in grouped.items():
        total_kwh = total(p.kwh for p in members)
        series.append(
            TimeSeriesData(
                period=key,
                data=tuple(members),
                total_kwh=total_kwh,
                total_cost=total(p.cost for p in members),
                average_daily=total_kwh / len(members),
                trend=classify_trend(members),
            )
        )
    return series


def positive_only(points: Iterable[ChartDataPoint]) -> list[ChartDataPoint]:
    """Drop non-positive intervals, as the summary views do before totalling."""
    return [p for p in points if p.kwh > 0]
