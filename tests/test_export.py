import json
from datetime import datetime

from meterlog.export import (
    consumption_records,
    consumption_to_csv,
    consumption_to_json,
    readings_to_csv,
    readings_to_json,
    write_export,
)
from meterlog.models import MeterReading, ReadingType

READINGS = [
    MeterReading("first", "default", 1000.0, datetime(2024, 1, 1, 8, 0), is_first_reading=True),
    MeterReading("second", "default", 1010.0, datetime(2024, 1, 2, 8, 0)),
    MeterReading(
        "third",
        "default",
        1040.0,
        datetime(2024, 1, 5, 14, 30),
        type=ReadingType.ESTIMATED,
        notes='Says "approx"',
        created_at=datetime(2024, 1, 5, 15, 0, 5),
    ),
]


def test_readings_to_csv():
    lines = readings_to_csv(READINGS).splitlines()

    assert lines[0] == '"Date","Time","Reading (kWh)","Type","Notes","Created At","Updated At"'
    assert lines[3] == (
        '"05/01/2024","14:30","1040.0","ESTIMATED","Says ""approx""","05/01/2024, 15:00:05",""'
    )


def test_readings_to_json():
    data = json.loads(readings_to_json(READINGS))

    assert [r["id"] for r in data] == ["first", "second", "third"]
    assert data[2]["date"] == "2024-01-05T14:30:00"
    assert data[0]["is_first_reading"] is True


def test_consumption_records_skip_non_positive_intervals():
    records = consumption_records(READINGS, 0.30)

    assert records == [{"date": "2024-01-05", "kwh": 30.0, "cost": 9.0, "reading_id": "third"}]


def test_consumption_records_round_to_pennies():
    readings = [
        MeterReading("a", "default", 1000.0, datetime(2024, 1, 1)),
        MeterReading("b", "default", 1033.333, datetime(2024, 1, 2)),
    ]

    assert consumption_records(readings, 0.30) == [
        {"date": "2024-01-02", "kwh": 33.33, "cost": 10.0, "reading_id": "b"}
    ]


def test_consumption_to_csv():
    assert consumption_to_csv(READINGS, 0.30) == "Date,kWh,Cost,Reading ID\n2024-01-05,30.0,9.0,third\n"


def test_consumption_to_json_has_metadata():
    data = json.loads(consumption_to_json(READINGS, 0.30, exported_at=datetime(2024, 2, 1, 9, 0)))

    assert data["metadata"] == {
        "total_records": 1,
        "export_date": "2024-02-01T09:00:00",
        "format": "json",
    }
    assert data["data"][0]["reading_id"] == "third"


def test_write_export_creates_parent_directories(tmp_path):
    path = write_export("hello", tmp_path / "exports" / "readings.csv")
    assert path.read_text() == "hello"
