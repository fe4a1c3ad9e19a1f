from datetime import date

from meterlog.analysis.aggregation import aggregate, bucket_key, positive_only, week_end, week_start
from meterlog.models import ChartDataPoint, Period, Trend


POINTS = [
    ChartDataPoint("2024-01-02", 10.0, 3.0),
    ChartDataPoint("2024-01-05", 20.0, 6.0),
    ChartDataPoint("2024-01-08", 30.0, 9.0),
]


def test_weeks_start_on_monday():
    # 2024-01-07 is a Sunday
    assert week_start(date(2024, 1, 7)) == date(2024, 1, 1)
    assert week_start(date(2024, 1, 8)) == date(2024, 1, 8)
    assert week_end(date(2024, 1, 3)) == date(2024, 1, 7)


def test_bucket_keys():
    day = date(2024, 2, 29)
    assert bucket_key(day, Period.DAILY) == "2024-02-29"
    assert bucket_key(day, Period.WEEKLY) == "2024-02-26"
    assert bucket_key(day, Period.MONTHLY) == "2024-02"


def test_weekly_aggregation():
    weeks = aggregate(POINTS, Period.WEEKLY)

    assert [w.period for w in weeks] == ["2024-01-01", "2024-01-08"]
    assert weeks[0].total_kwh == 30.0
    assert weeks[0].total_cost == 9.0
    assert weeks[0].average_daily == 15.0
    assert weeks[0].trend == Trend.INCREASING
    assert len(weeks[1].data) == 1


def test_monthly_average_is_per_point():
    (month,) = aggregate(POINTS, Period.MONTHLY)

    assert month.period == "2024-01"
    assert month.total_kwh == 60.0
    assert month.average_daily == 20.0


def test_daily_buckets_and_exact_totals():
    points = [ChartDataPoint("2024-01-02", 0.1, 0.03), ChartDataPoint("2024-01-02", 0.2, 0.06)]

    (day,) = aggregate(points, Period.DAILY)

    assert day.total_kwh == 0.3
    assert day.total_cost == 0.09


def test_aggregate_empty():
    assert aggregate([], Period.WEEKLY) == []


def test_positive_only():
    points = [*POINTS, ChartDataPoint("2024-01-09", 0.0, 0.0), ChartDataPoint("2024-01-10", -5.0, -1.5)]
    assert positive_only(points) == POINTS
