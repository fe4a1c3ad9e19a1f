import sqlite3
from datetime import datetime

import pytest

from meterlog import db
from meterlog.models import MeterReading, ReadingType


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "meterlog.db"
    db.init_db(path)
    return path


def make_reading(reading_id, value, day, type=ReadingType.MANUAL, first=False):
    return MeterReading(
        id=reading_id,
        meter_id="default",
        reading=value,
        date=datetime(2024, 1, day, 9, 30),
        type=type,
        notes="note" if first else None,
        is_first_reading=first,
        created_at=datetime(2024, 1, day, 10, 0),
        updated_at=datetime(2024, 1, day, 10, 0),
    )


def test_readings_survive_a_round_trip(db_path):
    original = make_reading("a", 1000.5, 1, first=True)

    db.save_readings([original], db_path)

    assert db.load_readings(db_path) == [original]


def test_load_readings_is_ordered_by_date(db_path):
    db.save_readings([make_reading("b", 1010, 2), make_reading("a", 1000, 1)], db_path)
    assert [r.id for r in db.load_readings(db_path)] == ["a", "b"]


def test_store_applies_deletes_and_upserts(db_path):
    store = db.SQLiteReadingStore(db_path)

    store.apply([], [make_reading("a", 1000, 1), make_reading("b", 1010, 2)])
    store.apply(["a"], [make_reading("b", 1011, 2)])

    assert [(r.id, r.reading) for r in store.load_all()] == [("b", 1011)]


def test_failed_batch_writes_nothing(db_path):
    store = db.SQLiteReadingStore(db_path)
    store.apply([], [make_reading("a", 1000, 1, type=ReadingType.ESTIMATED)])

    # Negative readings violate the table's CHECK constraint
    with pytest.raises(sqlite3.IntegrityError):
        store.apply(["a"], [make_reading("b", 1010, 1), make_reading("c", -5, 2)])

    assert [r.id for r in store.load_all()] == ["a"]


def test_get_stats(db_path):
    db.save_readings(
        [
            make_reading("a", 1000, 1),
            make_reading("b", 1010, 2),
            make_reading("c", 1015, 3, type=ReadingType.ESTIMATED),
        ],
        db_path,
    )

    stats = db.get_stats(db_path)

    assert stats["meter_readings"]["count"] == 3
    assert stats["meter_readings"]["earliest"].startswith("2024-01-01")
    assert stats["readings_by_type"] == {"ESTIMATED": 1, "MANUAL": 2}
    assert stats["tariffs"]["count"] == 0


def test_get_db_path_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "nested" / "meter.db"
    monkeypatch.setenv("METERLOG_DB_PATH", str(target))

    assert db.get_db_path() == target
    assert target.parent.exists()
