"""Export readings and consumption to CSV and JSON."""

import csv
import io
import json
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .analysis.consumption import build_series
from .models import MeterReading
from .money import round_to
from .repository import sort_readings

READING_HEADERS = ["Date", "Time", "Reading (kWh)", "Type", "Notes", "Created At", "Updated At"]
CONSUMPTION_HEADERS = ["Date", "kWh", "Cost", "Reading ID"]


def _uk_timestamp(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y, %H:%M:%S") if value else ""


def readings_to_csv(readings: Iterable[MeterReading]) -> str:
    """Readings as CSV with every field quoted, dates in UK format."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(READING_HEADERS)
    for reading in readings:
        writer.writerow(
            [
                reading.date.strftime("%d/%m/%Y"),
                reading.date.strftime("%H:%M"),
                str(reading.reading),
                reading.type.value,
                reading.notes or "",
                _uk_timestamp(reading.created_at),
                _uk_timestamp(reading.updated_at),
            ]
        )
    return buffer.getvalue()


def readings_to_json(readings: Iterable[MeterReading]) -> str:
    return json.dumps([r.to_dict() for r in readings], indent=2)


def consumption_records(readings: Iterable[MeterReading], unit_rate: float) -> list[dict]:
    """Positive consumption intervals with the id of the closing reading."""
    ordered = sort_readings(readings)
    # One point per reading after the first, except first readings
    closing = [r for r in ordered[1:] if not r.is_first_reading]
    points = build_series(ordered, unit_rate)

    return [
        {
            "date": point.date,
            "kwh": round_to(point.kwh),
            "cost": round_to(point.cost),
            "reading_id": reading.id,
        }
        for point, reading in zip(points, closing)
        if point.kwh > 0
    ]


def consumption_to_csv(readings: Iterable[MeterReading], unit_rate: float) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CONSUMPTION_HEADERS)
    for record in consumption_records(readings, unit_rate):
        writer.writerow([record["date"], record["kwh"], record["cost"], record["reading_id"]])
    return buffer.getvalue()


def consumption_to_json(
    readings: Iterable[MeterReading], unit_rate: float, exported_at: datetime | None = None
) -> str:
    records = consumption_records(readings, unit_rate)
    return json.dumps(
        {
            "data": records,
            "metadata": {
                "total_records": len(records),
                "export_date": (exported_at or datetime.now()).isoformat(),
                "format": "json",
            },
        },
        indent=2,
    )


def write_export(content: str, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content)
    return output_path
