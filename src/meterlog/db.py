"""Database connection, schema and reading storage."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator

from . import config
from .models import MeterReading, ReadingType

SCHEMA = """
-- Cumulative meter readings (manual, estimated and imported)
CREATE TABLE IF NOT EXISTS meter_readings (
    id TEXT PRIMARY KEY,
    meter_id TEXT NOT NULL,
    reading REAL NOT NULL CHECK (reading >= 0),
    date TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'MANUAL',
    notes TEXT,
    is_first_reading INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

-- Supplier tariff history
CREATE TABLE IF NOT EXISTS tariffs (
    id TEXT PRIMARY KEY,
    provider TEXT NOT NULL,
    name TEXT NOT NULL,
    product_type TEXT,
    unit_rate REAL NOT NULL,
    standing_charge REAL NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT,
    payment_method TEXT,
    early_exit_fee REAL DEFAULT 0,
    estimated_annual_usage REAL DEFAULT 0,
    estimated_annual_cost REAL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_readings_date ON meter_readings(date);
CREATE INDEX IF NOT EXISTS idx_readings_meter ON meter_readings(meter_id, date);
"""

READING_COLUMNS = (
    "id, meter_id, reading, date, type, notes, is_first_reading, created_at, updated_at"
)


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = config.get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def row_to_reading(row: sqlite3.Row) -> MeterReading:
    return MeterReading(
        id=row["id"],
        meter_id=row["meter_id"],
        reading=row["reading"],
        date=datetime.fromisoformat(row["date"]),
        type=ReadingType(row["type"]),
        notes=row["notes"],
        is_first_reading=bool(row["is_first_reading"]),
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


def reading_to_row(reading: MeterReading) -> tuple:
    return (
        reading.id,
        reading.meter_id,
        reading.reading,
        reading.date.isoformat(),
        reading.type.value,
        reading.notes,
        int(reading.is_first_reading),
        reading.created_at.isoformat() if reading.created_at else None,
        reading.updated_at.isoformat() if reading.updated_at else None,
    )


def load_readings(db_path: Path | None = None) -> list[MeterReading]:
    """Load every reading, oldest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            f"SELECT {READING_COLUMNS} FROM meter_readings ORDER BY date"
        ).fetchall()
    return [row_to_reading(row) for row in rows]


def _upsert_readings(conn: sqlite3.Connection, readings: Iterable[MeterReading]) -> int:
    count = 0
    for reading in readings:
        conn.execute(
            f"INSERT OR REPLACE INTO meter_readings ({READING_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            reading_to_row(reading),
        )
        count += 1
    return count


def save_readings(readings: Iterable[MeterReading], db_path: Path | None = None) -> int:
    """Insert or replace readings. Returns number of readings written."""
    with get_connection(db_path) as conn:
        count = _upsert_readings(conn, readings)
        conn.commit()
    return count


def apply_reading_changes(
    deletes: Iterable[str],
    upserts: Iterable[MeterReading],
    db_path: Path | None = None,
) -> None:
    """Delete and insert-or-replace readings in a single transaction.

    If any statement fails, nothing is written.
    """
    with get_connection(db_path) as conn:
        try:
            conn.executemany(
                "DELETE FROM meter_readings WHERE id = ?", [(reading_id,) for reading_id in deletes]
            )
            _upsert_readings(conn, upserts)
        except sqlite3.Error:
            conn.rollback()
            raise
        conn.commit()


class SQLiteReadingStore:
    """Reading store backed by the SQLite database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    def load_all(self) -> list[MeterReading]:
        return load_readings(self.db_path)

    def apply(self, deletes: list[str], upserts: list[MeterReading]) -> None:
        apply_reading_changes(deletes, upserts, self.db_path)


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute(
            "SELECT COUNT(*) as count, MIN(date) as earliest, MAX(date) as latest FROM meter_readings"
        ).fetchone()
        stats["meter_readings"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        # By type
        rows = conn.execute(
            "SELECT type, COUNT(*) as count FROM meter_readings GROUP BY type"
        ).fetchall()
        stats["readings_by_type"] = {row["type"]: row["count"] for row in rows}

        row = conn.execute("SELECT COUNT(*) as count FROM tariffs").fetchone()
        stats["tariffs"] = {"count": row["count"]}

        return stats
