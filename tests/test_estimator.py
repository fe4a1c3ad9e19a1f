from datetime import date, datetime

import pytest

from meterlog.analysis.estimator import (
    daily_average,
    generate_estimated_readings,
    plan_estimated_readings,
)
from meterlog.models import ReadingType
from meterlog.repository import ReadingRepository


@pytest.fixture
def repo():
    """Two manual readings four days apart averaging 5 kWh/day."""
    repository = ReadingRepository(clock=lambda: datetime(2024, 1, 13, 20, 0))
    repository.add(980, date(2024, 1, 6))
    repository.add(1000, date(2024, 1, 10))
    return repository


def test_fills_days_since_last_manual_reading(repo):
    added = generate_estimated_readings(repo, date(2024, 1, 13))

    assert [(r.day, r.reading) for r in added] == [
        (date(2024, 1, 11), 1005.0),
        (date(2024, 1, 12), 1010.0),
        (date(2024, 1, 13), 1015.0),
    ]
    assert all(r.type == ReadingType.ESTIMATED for r in added)
    assert all(r.date.hour == 0 and r.date.minute == 0 for r in added)
    assert added[0].notes == "Estimated reading (5.00 kWh/day average)"
    assert len(repo) == 5


def test_defaults_to_the_repository_clock(repo):
    added = generate_estimated_readings(repo)
    assert added[-1].day == date(2024, 1, 13)


def test_today_after_the_clock_stops_at_the_clock():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 12, 9, 0))
    repo.add(980, date(2024, 1, 6))
    repo.add(1000, date(2024, 1, 10))

    added = generate_estimated_readings(repo, date(2024, 1, 13))

    assert [(r.day, r.reading) for r in added] == [
        (date(2024, 1, 11), 1005.0),
        (date(2024, 1, 12), 1010.0),
    ]


def test_second_run_adds_nothing(repo):
    generate_estimated_readings(repo, date(2024, 1, 13))
    assert generate_estimated_readings(repo, date(2024, 1, 13)) == []
    assert len(repo) == 5


def test_existing_reading_in_gap_becomes_new_baseline(repo):
    repo.add(1012, date(2024, 1, 12), type=ReadingType.IMPORTED)

    added = generate_estimated_readings(repo, date(2024, 1, 13))

    assert [(r.day, r.reading) for r in added] == [
        (date(2024, 1, 11), 1005.0),
        (date(2024, 1, 13), 1017.0),
    ]
    assert len(repo.readings_on(date(2024, 1, 12))) == 1


def test_first_reading_is_left_out_of_the_average():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(0, date(2024, 1, 1), is_first_reading=True)
    repo.add(980, date(2024, 1, 6))
    repo.add(1000, date(2024, 1, 10))

    added = generate_estimated_readings(repo, date(2024, 1, 11))

    assert [r.reading for r in added] == [1005.0]


def test_estimates_only_use_the_last_manual_meter():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(500, date(2024, 1, 11), meter_id="garage", type=ReadingType.IMPORTED)
    repo.add(980, date(2024, 1, 6))
    repo.add(1000, date(2024, 1, 10))

    added = generate_estimated_readings(repo, date(2024, 1, 11))

    assert [(r.meter_id, r.reading) for r in added] == [("default", 1005.0)]


def test_no_manual_readings_is_a_silent_no_op():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(1000, date(2024, 1, 1), type=ReadingType.IMPORTED)
    repo.add(1010, date(2024, 1, 2), type=ReadingType.IMPORTED)

    assert generate_estimated_readings(repo, date(2024, 1, 13)) == []


def test_insufficient_history_is_a_silent_no_op():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(1000, date(2024, 1, 10))

    assert plan_estimated_readings(repo, date(2024, 1, 13)) == []
    assert generate_estimated_readings(repo, date(2024, 1, 13)) == []
    assert len(repo) == 1


def test_plan_does_not_store_anything(repo):
    planned = plan_estimated_readings(repo, date(2024, 1, 13))
    assert len(planned) == 3
    assert len(repo) == 2


def test_daily_average_rounds_estimates_to_two_places():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(1000, date(2024, 1, 7))
    repo.add(1010, date(2024, 1, 10))

    assert daily_average(repo.readings) == pytest.approx(10 / 3)
    added = generate_estimated_readings(repo, date(2024, 1, 12))
    assert [r.reading for r in added] == [1013.33, 1016.66]


def test_daily_average_without_elapsed_days_is_zero():
    repo = ReadingRepository(clock=lambda: datetime(2024, 1, 13))
    repo.add(1000, datetime(2024, 1, 7, 8, 0))
    repo.add(1010, datetime(2024, 1, 7, 20, 0))

    assert daily_average(repo.readings) == 0.0
