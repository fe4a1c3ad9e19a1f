"""Tariff history loading and cost-for-period calculation."""

import math
from datetime import date, datetime
from pathlib import Path

import yaml

from . import config
from .db import get_connection
from .errors import ConfigError
from .models import TariffPeriod
from .money import multiply, to_decimal


def _as_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_tariff(data: dict) -> TariffPeriod:
    """Build a tariff from a YAML/DB mapping."""
    try:
        return TariffPeriod(
            id=str(data["id"]),
            provider=data["provider"],
            name=data["name"],
            unit_rate=float(data["unit_rate"]),
            standing_charge=float(data["standing_charge"]),
            start_date=_as_date(data["start_date"]),
            end_date=_as_date(data.get("end_date")),
            product_type=data.get("product_type") or "Variable",
            payment_method=data.get("payment_method") or "Direct Debit",
            early_exit_fee=float(data.get("early_exit_fee") or 0),
            estimated_annual_usage=float(data.get("estimated_annual_usage") or 0),
            estimated_annual_cost=float(data.get("estimated_annual_cost") or 0),
        )
    except KeyError as e:
        raise ConfigError(f"Tariff is missing required field {e}")
    except ValueError as e:
        raise ConfigError(f"Invalid tariff {data.get('id', '?')}: {e}")


def load_tariffs_from_yaml(config_path: Path | None = None) -> list[TariffPeriod]:
    """Load tariff definitions from YAML config file."""
    path = config_path or config.find_config_file("tariffs.yaml", "METERLOG_TARIFFS")
    if path is None:
        raise FileNotFoundError("Could not find config/tariffs.yaml")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return [parse_tariff(t) for t in data.get("tariffs", [])]


def save_tariffs_to_db(tariffs: list[TariffPeriod], db_path: Path | None = None) -> int:
    """Save tariffs to the database. Returns number of tariffs saved."""
    count = 0
    with get_connection(db_path) as conn:
        for tariff in tariffs:
            conn.execute(
                """INSERT OR REPLACE INTO tariffs
                   (id, provider, name, product_type, unit_rate, standing_charge,
                    start_date, end_date, payment_method, early_exit_fee,
                    estimated_annual_usage, estimated_annual_cost)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    tariff.id,
                    tariff.provider,
                    tariff.name,
                    tariff.product_type,
                    tariff.unit_rate,
                    tariff.standing_charge,
                    tariff.start_date.isoformat(),
                    tariff.end_date.isoformat() if tariff.end_date else None,
                    tariff.payment_method,
                    tariff.early_exit_fee,
                    tariff.estimated_annual_usage,
                    tariff.estimated_annual_cost,
                ),
            )
            count += 1
        conn.commit()
    return count


def load_tariffs_from_db(db_path: Path | None = None) -> list[TariffPeriod]:
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT * FROM tariffs ORDER BY start_date").fetchall()
    return [parse_tariff(dict(row)) for row in rows]


def get_tariff_for_date(
    tariffs: list[TariffPeriod], day: date, today: date | None = None
) -> TariffPeriod | None:
    """Find the tariff active on a day.

    Tariffs are checked most recent first; an open-ended tariff runs until
    ``today``.
    """
    today = today or date.today()
    for tariff in sorted(tariffs, key=lambda t: t.start_date, reverse=True):
        end = tariff.end_date or today
        if tariff.start_date <= day <= end:
            return tariff
    return None


def calculate_cost_for_period(
    tariffs: list[TariffPeriod],
    start: datetime,
    end: datetime,
    consumption_kwh: float,
    today: date | None = None,
) -> float:
    """Cost in pounds of a period: standing charge per day plus unit cost.

    The tariff active on ``start`` applies to the whole period. Rates are
    stored in pence. Returns 0 when no tariff covers ``start``.
    """
    tariff = get_tariff_for_date(tariffs, start.date(), today)
    if tariff is None:
        return 0.0

    days = math.ceil((end - start).total_seconds() / 86400)
    standing = to_decimal(tariff.standing_charge) / 100 * days
    unit = to_decimal(tariff.unit_rate) / 100 * to_decimal(consumption_kwh)
    return float(standing + unit)


def annual_targets(tariff: TariffPeriod) -> dict:
    return {"usage": tariff.estimated_annual_usage, "cost": tariff.estimated_annual_cost}


def monthly_targets(tariff: TariffPeriod) -> dict:
    return {
        "usage": tariff.estimated_annual_usage / 12,
        "cost": tariff.estimated_annual_cost / 12,
    }


def unit_rate_in_pounds(tariff: TariffPeriod) -> float:
    """Tariff unit rate converted to the pounds-per-kWh rate used for series costs."""
    return multiply(tariff.unit_rate, 0.01)
