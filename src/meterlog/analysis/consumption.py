"""Consumption and cost between readings, and the series built from them."""

from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Iterable

from ..models import ChartDataPoint, MeterReading, ReadingType
from ..money import multiply, subtract, total
from ..repository import sort_readings


def consumption(prev: MeterReading, curr: MeterReading) -> float:
    """kWh used between two adjacent readings.

    A first (move-in) reading never has consumption going into it, whatever
    its value. Otherwise this is the plain difference, which is negative for
    malformed data (meter rollover, typing errors); callers decide what to
    do with that.
    """
    if curr.is_first_reading:
        return 0.0
    return subtract(curr.reading, prev.reading)


def cost(kwh: float, unit_rate: float) -> float:
    """Cost of a quantity at a flat unit rate (no standing charge)."""
    return multiply(kwh, unit_rate)


def make_point(day: date, kwh: float, unit_rate: float) -> ChartDataPoint:
    return ChartDataPoint(
        date=day.isoformat(),
        kwh=kwh,
        cost=cost(kwh, unit_rate),
        label=f"{kwh:.2f} kWh",
    )


def build_series(readings: Iterable[MeterReading], unit_rate: float) -> list[ChartDataPoint]:
    """One chart point per consumption interval, keyed by the later reading.

    Intervals ending on a first reading produce no point. When the series
    opens with the move-in reading, the interval after it is the baseline
    and is reported as zero; a first reading later in the series (a meter
    swap) starts counting straight away. Non-positive intervals are kept so
    anomalies stay visible.
    """
    ordered = sort_readings(readings)
    points = []

    for index, (prev, curr) in enumerate(zip(ordered, ordered[1:])):
        if curr.is_first_reading:
            continue
        if index == 0 and prev.is_first_reading:
            kwh = 0.0
        else:
            kwh = consumption(prev, curr)
        points.append(make_point(curr.day, kwh, unit_rate))

    return points


def _best_reading_per_day(readings: list[MeterReading]) -> list[MeterReading]:
    best: dict[date, MeterReading] = {}
    for reading in readings:
        existing = best.get(reading.day)
        if existing is None:
            best[reading.day] = reading
        elif reading.type == ReadingType.MANUAL and existing.type != ReadingType.MANUAL:
            best[reading.day] = reading
        elif reading.date > existing.date and (
            reading.type == ReadingType.MANUAL or existing.type != ReadingType.MANUAL
        ):
            best[reading.day] = reading
    return sort_readings(best.values())


def build_daily_series(
    readings: Iterable[MeterReading],
    unit_rate: float,
    fill_missing_days: bool = True,
) -> list[ChartDataPoint]:
    """Calendar-day consumption series.

    Readings are first reduced to one per day (manual readings win, then the
    latest). Negative deltas are clamped to zero and only positive
    consumption is costed. With ``fill_missing_days`` the days between two
    readings appear with zero consumption, so the series has no holes; the
    whole delta stays on the day of the later reading.
    """
    normalized = _best_reading_per_day(sort_readings(readings))
    daily: dict[date, list[float]] = OrderedDict()

    for prev, curr in zip(normalized, normalized[1:]):
        if curr.is_first_reading:
            continue

        if fill_missing_days:
            gap_day = prev.day + timedelta(days=1)
            while gap_day < curr.day:
                daily.setdefault(gap_day, [])
                gap_day += timedelta(days=1)

        kwh = max(0.0, subtract(curr.reading, prev.reading))
        daily.setdefault(curr.day, []).append(kwh)

    points = []
    for day in sorted(daily):
        kwh = total(daily[day])
        point_cost = cost(kwh, unit_rate) if kwh > 0 else 0.0
        points.append(ChartDataPoint(day.isoformat(), kwh, point_cost, f"{kwh:.2f} kWh"))
    return points


def filter_readings_by_date_range(
    readings: Iterable[MeterReading], start: datetime, end: datetime
) -> list[MeterReading]:
    """Readings with start <= date <= end."""
    return [r for r in readings if start <= r.date <= end]
