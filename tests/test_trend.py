from meterlog.analysis.trend import classify_trend
from meterlog.models import ChartDataPoint, Trend


def points(*values):
    return [ChartDataPoint(f"2024-01-{i + 1:02d}", v, 0.0) for i, v in enumerate(values)]


def test_increasing_and_stable():
    assert classify_trend(points(10, 10, 10, 20, 20, 20)) == Trend.INCREASING
    assert classify_trend(points(10, 10, 10, 10, 10, 10)) == Trend.STABLE


def test_decreasing():
    assert classify_trend(points(20, 20, 10, 10)) == Trend.DECREASING


def test_change_within_five_percent_is_stable():
    assert classify_trend(points(10, 10.4)) == Trend.STABLE
    assert classify_trend(points(10, 9.6)) == Trend.STABLE


def test_middle_point_of_odd_series_belongs_to_second_half():
    # [10] vs [20, 20]
    assert classify_trend(points(10, 20, 20)) == Trend.INCREASING
    # [20] vs [20, 5] -> 12.5 < 20
    assert classify_trend(points(20, 20, 5)) == Trend.DECREASING


def test_short_series_is_stable():
    assert classify_trend([]) == Trend.STABLE
    assert classify_trend(points(50)) == Trend.STABLE
