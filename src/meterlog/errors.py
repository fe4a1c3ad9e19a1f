"""Errors raised by reading mutations.

All of them are raised before any state changes, so a failed mutation
leaves the repository exactly as it was.
"""


class MeterLogError(Exception):
    """Base exception for meter log errors."""
    pass


class DuplicateReadingError(MeterLogError):
    """A reading for the same meter and day with (nearly) the same value exists."""

    def __init__(self, existing):
        self.existing = existing
        super().__init__(
            f"A reading for {existing.day.isoformat()} already exists "
            f"({existing.reading} kWh)"
        )


class NotFoundError(MeterLogError):
    """No reading with the given id."""

    def __init__(self, reading_id: str):
        self.reading_id = reading_id
        super().__init__(f"Reading not found: {reading_id}")


class NotEstimatedError(MeterLogError):
    """Attempted to remove a real reading through the estimated-reading path."""

    def __init__(self, reading_id: str):
        self.reading_id = reading_id
        super().__init__(f"Reading {reading_id} is not an estimated reading")


class InvalidReadingError(MeterLogError, ValueError):
    """Reading value, date or patch field is invalid."""
    pass


class ConfigError(MeterLogError, ValueError):
    """Configuration file or environment value is invalid."""
    pass
