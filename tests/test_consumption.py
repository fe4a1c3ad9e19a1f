from datetime import datetime

from meterlog.analysis.consumption import (
    build_daily_series,
    build_series,
    consumption,
    cost,
    filter_readings_by_date_range,
)
from meterlog.models import ChartDataPoint, MeterReading, ReadingType


def make_reading(day, value, first=False, type=ReadingType.MANUAL, hour=0):
    return MeterReading(
        id=f"r-{day}-{hour}",
        meter_id="default",
        reading=value,
        date=datetime(2024, 1, day, hour),
        type=type,
        is_first_reading=first,
    )


def test_consumption_is_zero_into_a_first_reading():
    prev = make_reading(1, 5000)
    curr = make_reading(2, 10, first=True)
    assert consumption(prev, curr) == 0.0


def test_consumption_keeps_negative_deltas():
    assert consumption(make_reading(1, 1000), make_reading(2, 1030)) == 30.0
    assert consumption(make_reading(1, 1000), make_reading(2, 990)) == -10.0


def test_cost_is_decimal_exact():
    assert cost(33.333, 0.30) == 9.9999


def test_series_from_move_in_reading():
    readings = [
        make_reading(1, 1000, first=True),
        make_reading(2, 1010),
        make_reading(5, 1040),
    ]

    points = build_series(readings, 0.30)

    assert points == [
        ChartDataPoint("2024-01-02", 0.0, 0.0, "0.00 kWh"),
        ChartDataPoint("2024-01-05", 30.0, 9.0, "30.00 kWh"),
    ]


def test_series_has_one_point_per_interval():
    readings = [make_reading(day, 1000 + day * 10) for day in (4, 1, 3, 2)]

    points = build_series(readings, 0.30)

    assert len(points) == 3
    assert [p.date for p in points] == ["2024-01-02", "2024-01-03", "2024-01-04"]


def test_series_keeps_anomalies_visible():
    points = build_series([make_reading(1, 1000), make_reading(2, 990)], 0.30)
    assert points[0].kwh == -10.0
    assert points[0].cost == -3.0


def test_meter_swap_counts_from_the_new_first_reading():
    """A meter swap: the new meter's first reading restarts the count."""
    readings = [
        make_reading(1, 1000),
        make_reading(2, 1010),
        make_reading(3, 5, first=True),
        make_reading(4, 25),
    ]

    points = build_series(readings, 0.30)

    assert [(p.date, p.kwh) for p in points] == [("2024-01-02", 10.0), ("2024-01-04", 20.0)]


def test_series_needs_two_readings():
    assert build_series([], 0.30) == []
    assert build_series([make_reading(1, 1000)], 0.30) == []


def test_daily_series_fills_missing_days():
    readings = [make_reading(1, 1000), make_reading(2, 1010), make_reading(5, 1040)]

    points = build_daily_series(readings, 0.30)

    assert [(p.date, p.kwh) for p in points] == [
        ("2024-01-02", 10.0),
        ("2024-01-03", 0.0),
        ("2024-01-04", 0.0),
        ("2024-01-05", 30.0),
    ]
    assert points[-1].cost == 9.0

    sparse = build_daily_series(readings, 0.30, fill_missing_days=False)
    assert [p.date for p in sparse] == ["2024-01-02", "2024-01-05"]


def test_daily_series_clamps_negative_deltas():
    points = build_daily_series([make_reading(1, 1000), make_reading(2, 990)], 0.30)
    assert points == [ChartDataPoint("2024-01-02", 0.0, 0.0, "0.00 kWh")]


def test_daily_series_prefers_manual_reading_on_same_day():
    readings = [
        make_reading(1, 1000),
        make_reading(2, 1008, type=ReadingType.ESTIMATED),
        make_reading(2, 1010, hour=18),
    ]

    points = build_daily_series(readings, 0.30)

    assert [(p.date, p.kwh) for p in points] == [("2024-01-02", 10.0)]


def test_filter_readings_by_date_range_is_inclusive():
    readings = [make_reading(day, 1000 + day) for day in range(1, 6)]

    selected = filter_readings_by_date_range(readings, datetime(2024, 1, 2), datetime(2024, 1, 4))

    assert [r.reading for r in selected] == [1002, 1003, 1004]
