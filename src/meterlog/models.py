"""Data models for meter readings, derived series and tariffs."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class ReadingType(str, Enum):
    MANUAL = "MANUAL"  # entered by the user
    ESTIMATED = "ESTIMATED"  # synthesised by the gap estimator
    IMPORTED = "IMPORTED"  # taken from a supplier statement


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class MeterReading:
    """A cumulative meter value (kWh) taken at a point in time."""

    id: str
    meter_id: str
    reading: float
    date: datetime
    type: ReadingType = ReadingType.MANUAL
    notes: str | None = None
    is_first_reading: bool = False  # move-in / baseline reading
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def day(self) -> date:
        """Calendar date of the reading."""
        return self.date.date()

    @property
    def is_estimated(self) -> bool:
        return self.type == ReadingType.ESTIMATED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "meter_id": self.meter_id,
            "reading": self.reading,
            "date": self.date.isoformat(),
            "type": self.type.value,
            "notes": self.notes,
            "is_first_reading": self.is_first_reading,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class ChartDataPoint:
    """Consumption over one interval, keyed by the later reading's date."""

    date: str  # YYYY-MM-DD
    kwh: float
    cost: float
    label: str = ""


@dataclass(frozen=True)
class TimeSeriesData:
    """Aggregate of chart points falling in one day, week or month."""

    period: str
    data: tuple[ChartDataPoint, ...]
    total_kwh: float
    total_cost: float
    average_daily: float
    trend: Trend


@dataclass
class UserPreferences:
    unit_rate: float = 0.30  # currency per kWh
    standing_charge: float = 0.50  # currency per day
    currency: str = "GBP"
    theme: str = "dark"
    notifications: bool = True
    # Reserved for time-of-use tariffs; not used by the cost calculator.
    time_of_use_rates: list[dict] = field(default_factory=list)


@dataclass
class TariffPeriod:
    """A supplier tariff active over a date range."""

    id: str
    provider: str
    name: str
    unit_rate: float  # pence per kWh
    standing_charge: float  # pence per day
    start_date: date
    end_date: date | None = None
    product_type: str = "Variable"  # 'Fixed' or 'Variable'
    payment_method: str = "Direct Debit"
    early_exit_fee: float = 0.0
    estimated_annual_usage: float = 0.0  # kWh
    estimated_annual_cost: float = 0.0  # pounds


class ReadingEventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ReadingEvent:
    """A reading change delivered from outside the local session."""

    kind: ReadingEventKind
    reading: MeterReading | None = None
    reading_id: str | None = None

    @property
    def target_id(self) -> str | None:
        if self.reading is not None:
            return self.reading.id
        return self.reading_id
