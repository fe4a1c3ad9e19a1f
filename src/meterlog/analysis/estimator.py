"""Estimated readings for the days since the last manual reading.

Algorithm:
1. Find the most recent manual reading; without one there is nothing to
   extrapolate from.
2. Take up to the last HISTORY_WINDOW manual, non-first readings and work
   out the average daily consumption across their consecutive intervals.
3. Walk forward one day at a time from the day after the last manual
   reading through today. A day that already has a reading (real or a
   previous estimate) resets the running value to that reading; any other
   day gets an ESTIMATED reading advanced by the daily average.

Days already covered are skipped, so running the estimator again on the
same day adds nothing.
"""

import logging
from datetime import date, datetime, time, timedelta

from ..models import MeterReading, ReadingType
from ..money import round_to, subtract, to_decimal, total
from ..repository import ReadingRepository

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 7  # most recent manual readings used for the average
ESTIMATE_NOTE = "Estimated reading ({average:.2f} kWh/day average)"


def daily_average(readings: list[MeterReading]) -> float:
    """Average kWh per day across consecutive readings (0 if no days elapse)."""
    consumed = []
    days = 0
    for prev, curr in zip(readings, readings[1:]):
        consumed.append(subtract(curr.reading, prev.reading))
        days += (curr.day - prev.day).days

    if days == 0:
        return 0.0
    return float(to_decimal(total(consumed)) / days)


def plan_estimated_readings(repository: ReadingRepository, today: date) -> list[MeterReading]:
    """Build the estimated readings that would fill the gap up to ``today``.

    Nothing is stored. Returns an empty list when there is no manual
    reading or fewer than two usable readings to average over.
    """
    readings = repository.readings
    manual = [r for r in readings if r.type == ReadingType.MANUAL]
    if not manual:
        logger.debug("No manual readings; nothing to estimate from")
        return []

    last_manual = manual[-1]
    history = [r for r in manual if not r.is_first_reading][-HISTORY_WINDOW:]
    if len(history) < 2:
        logger.debug("Insufficient history for estimation (%d reading(s))", len(history))
        return []

    average = daily_average(history)
    meter_id = last_manual.meter_id
    current = last_manual.reading
    estimates = []

    day = last_manual.day + timedelta(days=1)
    while day <= today:
        existing = repository.readings_on(day, meter_id)
        if existing:
            current = existing[-1].reading
        else:
            current = round_to(to_decimal(current) + to_decimal(average), 2)
            estimates.append(
                repository.new_reading(
                    current,
                    datetime.combine(day, time.min),
                    meter_id=meter_id,
                    type=ReadingType.ESTIMATED,
                    notes=ESTIMATE_NOTE.format(average=average),
                )
            )
        day += timedelta(days=1)

    return estimates


def generate_estimated_readings(
    repository: ReadingRepository, today: date | None = None
) -> list[MeterReading]:
    """Estimate readings up to ``today`` and add them to the repository in one batch.

    ``today`` never runs past the repository clock, which would reject
    readings dated after it.
    """
    clock_today = repository.now().date()
    if today is None or today > clock_today:
        today = clock_today

    estimates = plan_estimated_readings(repository, today)
    if not estimates:
        return []

    added = repository.add_many(estimates)
    logger.info(
        "Added %d estimated reading(s) from %s to %s",
        len(added),
        added[0].day,
        added[-1].day,
    )
    return added
