"""In-memory repository of meter readings.

The repository is the only place readings change. Every mutation builds a
new, date-sorted list, checks it against the duplicate and single
first-reading rules, and only then swaps it in and notifies listeners. A
mutation that raises leaves the stored readings untouched.
"""

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, time
from typing import Callable, Iterable, Iterator

from .errors import DuplicateReadingError, InvalidReadingError, NotEstimatedError, NotFoundError
from .models import MeterReading, ReadingType
from .money import subtract, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_METER_ID = "default"
DUPLICATE_TOLERANCE_KWH = to_decimal("0.01")

# Fields that may be changed through update()
PATCHABLE_FIELDS = {"meter_id", "reading", "date", "type", "notes", "is_first_reading"}

Listener = Callable[[list[MeterReading]], None]


def as_datetime(value: date | datetime) -> datetime:
    """Promote a bare date to midnight of that day."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def sort_readings(readings: Iterable[MeterReading]) -> list[MeterReading]:
    """Sort readings by date, keeping insertion order for equal dates."""
    return sorted(readings, key=lambda r: r.date)


def find_duplicate(
    readings: Iterable[MeterReading], meter_id: str, day: date, value: float
) -> MeterReading | None:
    """Find a reading on the same meter and day whose value is within tolerance."""
    for existing in readings:
        if existing.meter_id != meter_id or existing.day != day:
            continue
        if abs(to_decimal(subtract(existing.reading, value))) <= DUPLICATE_TOLERANCE_KWH:
            return existing
    return None


class ReadingRepository:
    """Canonical, date-ordered set of readings for one session."""

    def __init__(
        self,
        readings: Iterable[MeterReading] = (),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._clock = clock
        self._readings = sort_readings(readings)
        self._listeners: list[Listener] = []

    # Read access

    @property
    def readings(self) -> list[MeterReading]:
        """Readings in ascending date order (a copy)."""
        return list(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def __iter__(self) -> Iterator[MeterReading]:
        return iter(list(self._readings))

    def get(self, reading_id: str) -> MeterReading:
        for reading in self._readings:
            if reading.id == reading_id:
                return reading
        raise NotFoundError(reading_id)

    def readings_on(self, day: date, meter_id: str | None = None) -> list[MeterReading]:
        """All readings on a calendar day, optionally for one meter."""
        return [
            r
            for r in self._readings
            if r.day == day and (meter_id is None or r.meter_id == meter_id)
        ]

    def first_reading(self) -> MeterReading | None:
        for reading in self._readings:
            if reading.is_first_reading:
                return reading
        return None

    def now(self) -> datetime:
        return self._clock()

    # Change notification

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every committed change.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, readings: Iterable[MeterReading]) -> None:
        self._readings = sort_readings(readings)
        snapshot = list(self._readings)
        for listener in list(self._listeners):
            listener(snapshot)

    # Construction and validation

    def new_reading(
        self,
        reading: float,
        when: date | datetime,
        meter_id: str = DEFAULT_METER_ID,
        type: ReadingType = ReadingType.MANUAL,
        notes: str | None = None,
        is_first_reading: bool = False,
    ) -> MeterReading:
        """Build a reading with a fresh id and audit timestamps (not stored)."""
        now = self._clock()
        return MeterReading(
            id=str(uuid.uuid4()),
            meter_id=meter_id,
            reading=float(reading),
            date=as_datetime(when),
            type=ReadingType(type),
            notes=notes,
            is_first_reading=is_first_reading,
            created_at=now,
            updated_at=now,
        )

    def _validate(self, reading: MeterReading) -> None:
        if reading.reading < 0:
            raise InvalidReadingError(f"Reading must not be negative: {reading.reading}")
        if reading.day > self._clock().date():
            raise InvalidReadingError(
                f"Reading date {reading.day.isoformat()} is in the future"
            )

    # Mutations

    def add(
        self,
        reading: float,
        when: date | datetime,
        meter_id: str = DEFAULT_METER_ID,
        type: ReadingType = ReadingType.MANUAL,
        notes: str | None = None,
        is_first_reading: bool = False,
        supersede_estimates: bool = False,
    ) -> MeterReading:
        """Add a reading.

        Raises DuplicateReadingError when the same meter already has a
        reading on that day within 0.01 kWh. With ``supersede_estimates``,
        estimated readings on that day for the meter are dropped first, as
        part of the same change.
        """
        new = self.new_reading(reading, when, meter_id, type, notes, is_first_reading)
        self._validate(new)

        remaining = self._readings
        superseded = []
        if supersede_estimates:
            superseded = [
                r for r in remaining if r.is_estimated and r.meter_id == meter_id and r.day == new.day
            ]
            superseded_ids = {r.id for r in superseded}
            remaining = [r for r in remaining if r.id not in superseded_ids]

        duplicate = find_duplicate(remaining, new.meter_id, new.day, new.reading)
        if duplicate is not None:
            logger.info("Rejected duplicate reading for %s on %s", meter_id, new.day)
            raise DuplicateReadingError(duplicate)

        if new.is_first_reading:
            remaining = self._clear_first_flag(remaining)

        self._commit([*remaining, new])
        if superseded:
            logger.debug("Replaced %d estimated reading(s) on %s", len(superseded), new.day)
        logger.debug("Added reading %s (%s kWh on %s)", new.id, new.reading, new.day)
        return new

    def add_many(self, readings: Iterable[MeterReading]) -> list[MeterReading]:
        """Add pre-built readings as a single change.

        Either all readings are added or, if any is invalid or a duplicate,
        none are.
        """
        batch = list(readings)
        if not batch:
            return []

        accepted: list[MeterReading] = []
        for reading in batch:
            self._validate(reading)
            duplicate = find_duplicate(
                [*self._readings, *accepted], reading.meter_id, reading.day, reading.reading
            )
            if duplicate is not None:
                raise DuplicateReadingError(duplicate)
            accepted.append(reading)

        self._commit([*self._readings, *accepted])
        logger.debug("Added %d reading(s) in one batch", len(accepted))
        return accepted

    def update(self, reading_id: str, **changes) -> MeterReading:
        """Apply a partial update to a reading and return the new version.

        The same duplicate rule as add() applies to the updated reading.
        """
        unknown = set(changes) - PATCHABLE_FIELDS
        if unknown:
            raise InvalidReadingError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        current = self.get(reading_id)
        if "date" in changes:
            changes["date"] = as_datetime(changes["date"])
        if "reading" in changes:
            changes["reading"] = float(changes["reading"])
        if "type" in changes:
            changes["type"] = ReadingType(changes["type"])

        updated = replace(current, **changes, updated_at=self._clock())
        self._validate(updated)

        others = [r for r in self._readings if r.id != reading_id]
        duplicate = find_duplicate(others, updated.meter_id, updated.day, updated.reading)
        if duplicate is not None:
            logger.info("Rejected update of %s: duplicate on %s", reading_id, updated.day)
            raise DuplicateReadingError(duplicate)

        if updated.is_first_reading:
            others = self._clear_first_flag(others)

        self._commit([*others, updated])
        logger.debug("Updated reading %s: %s", reading_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, reading_id: str) -> None:
        self.get(reading_id)
        self._commit(r for r in self._readings if r.id != reading_id)
        logger.debug("Deleted reading %s", reading_id)

    def set_first_reading(self, reading_id: str) -> MeterReading:
        """Mark a reading as the move-in reading and unmark every other one."""
        target = self.get(reading_id)
        now = self._clock()
        marked = replace(target, is_first_reading=True, updated_at=now)
        others = self._clear_first_flag(r for r in self._readings if r.id != reading_id)
        self._commit([*others, marked])
        logger.debug("Set first reading to %s", reading_id)
        return marked

    def toggle_first_reading(self, reading_id: str) -> MeterReading:
        """Unmark the reading if it is the first reading, otherwise mark it."""
        target = self.get(reading_id)
        if not target.is_first_reading:
            return self.set_first_reading(reading_id)

        unmarked = replace(target, is_first_reading=False, updated_at=self._clock())
        self._commit([unmarked if r.id == reading_id else r for r in self._readings])
        logger.debug("Cleared first reading flag on %s", reading_id)
        return unmarked

    def remove_estimated_for_date(self, day: date | datetime, meter_id: str | None = None) -> int:
        """Remove every estimated reading on a calendar day. Returns the count."""
        if isinstance(day, datetime):
            day = day.date()
        removed = [
            r
            for r in self._readings
            if r.is_estimated and r.day == day and (meter_id is None or r.meter_id == meter_id)
        ]
        if removed:
            removed_ids = {r.id for r in removed}
            self._commit(r for r in self._readings if r.id not in removed_ids)
            logger.debug("Removed %d estimated reading(s) on %s", len(removed), day)
        return len(removed)

    def remove_estimated_reading(self, reading_id: str) -> None:
        """Remove one estimated reading; real readings are refused."""
        target = self.get(reading_id)
        if not target.is_estimated:
            logger.info("Refused to remove non-estimated reading %s", reading_id)
            raise NotEstimatedError(reading_id)
        self._commit(r for r in self._readings if r.id != reading_id)
        logger.debug("Removed estimated reading %s", reading_id)

    # Folding externally created changes

    def fold(self, reading: MeterReading) -> None:
        """Insert a reading or replace the one with the same id.

        Used for readings that already exist elsewhere (a store or a remote
        session), so no duplicate check is made.
        """
        others = [r for r in self._readings if r.id != reading.id]
        if reading.is_first_reading:
            others = self._clear_first_flag(others)
        self._commit([*others, reading])

    def discard(self, reading_id: str) -> bool:
        """Remove a reading if present. Returns whether anything was removed."""
        if not any(r.id == reading_id for r in self._readings):
            return False
        self._commit(r for r in self._readings if r.id != reading_id)
        return True

    def replace_all(self, readings: Iterable[MeterReading]) -> None:
        self._commit(readings)

    def _clear_first_flag(self, readings: Iterable[MeterReading]) -> list[MeterReading]:
        now = self._clock()
        return [
            replace(r, is_first_reading=False, updated_at=now) if r.is_first_reading else r
            for r in readings
        ]
