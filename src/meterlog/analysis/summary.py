"""Period and monthly summaries of meter readings.

Summaries total positive intervals only. The chart series keeps negative
and zero intervals, so these totals can differ from a sum over the raw
series when the data has anomalies.
"""

import calendar
import math
from datetime import date, datetime, time

from ..models import MeterReading, Period
from ..money import round_to, total
from ..repository import sort_readings
from .aggregation import aggregate, positive_only, week_end
from .consumption import build_series, filter_readings_by_date_range
from .trend import classify_trend


def get_period_summary(
    readings: list[MeterReading],
    unit_rate: float,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Generate a summary for a date range (all readings if no range is given)."""
    ordered = sort_readings(readings)
    if start is not None and end is not None:
        ordered = filter_readings_by_date_range(ordered, start, end)

    points = positive_only(build_series(ordered, unit_rate))
    total_kwh = total(p.kwh for p in points)
    total_cost = total(p.cost for p in points)

    # Average over elapsed days between the first and last reading
    days = 0
    if len(ordered) > 1:
        elapsed = ordered[-1].date - ordered[0].date
        days = math.ceil(elapsed.total_seconds() / 86400)
    daily_average = total_kwh / days if days > 0 else 0

    return {
        "total_kwh": round_to(total_kwh),
        "total_cost": round_to(total_cost),
        "daily_average": round_to(daily_average),
        "trend": classify_trend(points).value,
        "reading_count": len(ordered),
        "period": {
            "start": ordered[0].day.isoformat() if ordered else None,
            "end": ordered[-1].day.isoformat() if ordered else None,
            "days": days,
        },
    }


def get_monthly_overview(readings: list[MeterReading], unit_rate: float, month: date) -> dict:
    """Summarise one calendar month with a Monday-start weekly breakdown.

    If fewer than two readings fall in the month, the last reading before it
    is used as a baseline so the first in-month reading still has an
    interval.
    """
    month_start = month.replace(day=1)
    days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]
    month_end = month_start.replace(day=days_in_month)

    ordered = sort_readings(readings)
    in_month = filter_readings_by_date_range(
        ordered,
        datetime.combine(month_start, time.min),
        datetime.combine(month_end, time.max),
    )
    if len(in_month) < 2:
        before = [r for r in ordered if r.day < month_start]
        if before and len(in_month) == 1:
            in_month = [before[-1], *in_month]

    overview = {
        "month": f"{month_start.year:04d}-{month_start.month:02d}",
        "total_kwh": 0.0,
        "total_cost": 0.0,
        "average_daily": 0.0,
        "weekly_breakdown": [],
        "trend": "stable",
    }
    if len(in_month) < 2:
        return overview

    points = positive_only(build_series(in_month, unit_rate))
    weeks = aggregate(points, Period.WEEKLY)
    total_kwh = total(p.kwh for p in points)

    overview.update(
        total_kwh=round_to(total_kwh),
        total_cost=round_to(total(p.cost for p in points)),
        average_daily=round_to(total_kwh / days_in_month),
        weekly_breakdown=[
            {
                "week_start": week.period,
                "week_end": week_end(date.fromisoformat(week.period)).isoformat(),
                "kwh": round_to(week.total_kwh),
                "cost": round_to(week.total_cost),
                "readings": len(week.data),
            }
            for week in weeks
        ],
        trend=classify_trend(points).value,
    )
    return overview


def format_period_summary_text(summary: dict, currency_symbol: str = "£") -> str:
    """Format a period summary as human-readable text."""
    period = summary["period"]
    lines = [
        f"Energy Summary: {period['start'] or 'N/A'} to {period['end'] or 'N/A'}",
        f"({summary['reading_count']} readings over {period['days']} days)",
        "",
        "Totals:",
        f"  - Consumption: {summary['total_kwh']} kWh",
        f"  - Cost: {currency_symbol}{summary['total_cost']:.2f}",
        "",
        f"Daily average: {summary['daily_average']} kWh/day",
        f"Trend: {summary['trend']}",
    ]
    return "\n".join(lines)


def format_monthly_overview_text(overview: dict, currency_symbol: str = "£") -> str:
    """Format a monthly overview as human-readable text."""
    lines = [
        f"Monthly Overview for {overview['month']}",
        f"- Consumption: {overview['total_kwh']} kWh",
        f"- Cost: {currency_symbol}{overview['total_cost']:.2f}",
        f"- Daily average: {overview['average_daily']} kWh/day",
        f"- Trend: {overview['trend']}",
    ]

    if overview["weekly_breakdown"]:
        lines.append("")
        lines.append("Weeks:")
        for week in overview["weekly_breakdown"]:
            lines.append(
                f"  - {week['week_start']} to {week['week_end']}: "
                f"{week['kwh']} kWh ({currency_symbol}{week['cost']:.2f})"
            )
    else:
        lines.append("- No consumption recorded")

    return "\n".join(lines)
