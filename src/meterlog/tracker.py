"""Session object tying the reading repository to its derived analytics.

Every committed repository change, local or remote, triggers a full
recomputation of the chart series and the daily/weekly/monthly buckets.
Readers only ever see a completed snapshot: a new one replaces the old in
a single assignment once it is fully built.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Callable, Mapping, Protocol

from . import config
from .analysis.aggregation import aggregate
from .analysis.consumption import build_series
from .analysis.estimator import generate_estimated_readings
from .models import (
    ChartDataPoint,
    MeterReading,
    Period,
    ReadingEvent,
    ReadingEventKind,
    ReadingType,
    TimeSeriesData,
    UserPreferences,
)
from .repository import ReadingRepository

logger = logging.getLogger(__name__)


class ReadingStore(Protocol):
    """Where readings are persisted (see db.SQLiteReadingStore)."""

    def load_all(self) -> list[MeterReading]: ...

    def apply(self, deletes: list[str], upserts: list[MeterReading]) -> None:
        """Write all changes or, on error, none of them."""
        ...


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Derived series for one state of the repository."""

    chart_data: tuple[ChartDataPoint, ...]
    time_series: Mapping[Period, tuple[TimeSeriesData, ...]]

    def series_for(self, period: Period) -> tuple[TimeSeriesData, ...]:
        return self.time_series[Period(period)]


def build_snapshot(readings: list[MeterReading], unit_rate: float) -> AnalyticsSnapshot:
    chart_data = tuple(build_series(readings, unit_rate))
    time_series = {period: tuple(aggregate(chart_data, period)) for period in Period}
    return AnalyticsSnapshot(chart_data=chart_data, time_series=MappingProxyType(time_series))


class MeterTracker:
    """Reading repository plus its always-current analytics snapshot."""

    def __init__(
        self,
        repository: ReadingRepository | None = None,
        preferences: UserPreferences | None = None,
        store: ReadingStore | None = None,
        meter_id: str | None = None,
    ):
        self.repository = repository or ReadingRepository()
        self.preferences = preferences or UserPreferences()
        self.store = store
        self.meter_id = meter_id or config.get_meter_id()
        self._listeners: list[Callable[[AnalyticsSnapshot], None]] = []
        self._snapshot = build_snapshot(self.repository.readings, self.preferences.unit_rate)
        self.repository.subscribe(self._on_change)

    @classmethod
    def from_store(
        cls,
        store: ReadingStore,
        preferences: UserPreferences | None = None,
        clock: Callable[[], datetime] = datetime.now,
        meter_id: str | None = None,
    ) -> "MeterTracker":
        """Start a session from everything the store holds."""
        repository = ReadingRepository(store.load_all(), clock=clock)
        return cls(repository, preferences, store, meter_id)

    # Derived data

    @property
    def snapshot(self) -> AnalyticsSnapshot:
        return self._snapshot

    @property
    def readings(self) -> list[MeterReading]:
        return self.repository.readings

    @property
    def chart_data(self) -> tuple[ChartDataPoint, ...]:
        return self._snapshot.chart_data

    def time_series(self, period: Period = Period.DAILY) -> tuple[TimeSeriesData, ...]:
        return self._snapshot.series_for(period)

    def subscribe(self, listener: Callable[[AnalyticsSnapshot], None]) -> None:
        """Call ``listener`` with each new snapshot."""
        self._listeners.append(listener)

    def recompute(self) -> AnalyticsSnapshot:
        self._snapshot = build_snapshot(self.repository.readings, self.preferences.unit_rate)
        for listener in list(self._listeners):
            listener(self._snapshot)
        return self._snapshot

    def _on_change(self, readings: list[MeterReading]) -> None:
        self.recompute()

    def set_unit_rate(self, unit_rate: float) -> None:
        self.preferences.unit_rate = unit_rate
        self.recompute()

    # Local mutations

    def _persist(self, before: list[MeterReading]) -> None:
        """Write the difference between ``before`` and now to the store.

        The store applies the whole difference or nothing. If it fails, the
        repository is restored to ``before`` and the error propagates.
        """
        if self.store is None:
            return

        previous = {r.id: r for r in before}
        current = {r.id: r for r in self.repository.readings}
        deletes = [reading_id for reading_id in previous if reading_id not in current]
        upserts = [r for reading_id, r in current.items() if previous.get(reading_id) != r]
        if not deletes and not upserts:
            return

        try:
            self.store.apply(deletes, upserts)
        except Exception:
            logger.warning("Store rejected change; restoring %d reading(s)", len(before))
            self.repository.replace_all(before)
            raise

    def add_reading(
        self,
        reading: float,
        when: date | datetime,
        type: ReadingType = ReadingType.MANUAL,
        notes: str | None = None,
        is_first_reading: bool = False,
        meter_id: str | None = None,
    ) -> MeterReading:
        """Add a reading; a manual reading replaces estimates on the same day."""
        before = self.repository.readings
        added = self.repository.add(
            reading,
            when,
            meter_id=meter_id or self.meter_id,
            type=type,
            notes=notes,
            is_first_reading=is_first_reading,
            supersede_estimates=ReadingType(type) == ReadingType.MANUAL,
        )
        self._persist(before)
        return added

    def update_reading(self, reading_id: str, **changes) -> MeterReading:
        before = self.repository.readings
        updated = self.repository.update(reading_id, **changes)
        self._persist(before)
        return updated

    def delete_reading(self, reading_id: str) -> None:
        before = self.repository.readings
        self.repository.delete(reading_id)
        self._persist(before)

    def set_first_reading(self, reading_id: str) -> MeterReading:
        before = self.repository.readings
        marked = self.repository.set_first_reading(reading_id)
        self._persist(before)
        return marked

    def toggle_first_reading(self, reading_id: str) -> MeterReading:
        before = self.repository.readings
        toggled = self.repository.toggle_first_reading(reading_id)
        self._persist(before)
        return toggled

    def generate_estimated_readings(self, today: date | None = None) -> list[MeterReading]:
        before = self.repository.readings
        added = generate_estimated_readings(self.repository, today)
        if added:
            self._persist(before)
        return added

    def remove_estimated_for_date(self, day: date) -> int:
        before = self.repository.readings
        removed = self.repository.remove_estimated_for_date(day, self.meter_id)
        if removed:
            self._persist(before)
        return removed

    def remove_estimated_reading(self, reading_id: str) -> None:
        before = self.repository.readings
        self.repository.remove_estimated_reading(reading_id)
        self._persist(before)

    # Remote changes

    def apply_event(self, event: ReadingEvent) -> None:
        """Fold a change made elsewhere into this session.

        The remote copy is authoritative and is not written back to the
        store. Deleting an id that is already gone is a no-op.
        """
        if event.kind in (ReadingEventKind.ADDED, ReadingEventKind.UPDATED):
            if event.reading is None:
                raise ValueError(f"{event.kind.value} event without a reading")
            self.repository.fold(event.reading)
        elif event.kind == ReadingEventKind.DELETED:
            if event.target_id is None:
                raise ValueError("deleted event without a reading id")
            self.repository.discard(event.target_id)
        logger.debug("Applied %s event for %s", event.kind.value, event.target_id)
