"""UK electricity price collector.

Fetches half-hourly electricity prices for a distribution network operator
(DNO) region from the public electricity costs API, for comparing a
household tariff against current market prices.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

import httpx

logger = logging.getLogger(__name__)

API_BASE_URL = "https://odegdcpnma.execute-api.eu-west-2.amazonaws.com/development/prices"
VOLTAGE_LEVELS = ("HV", "LV", "LV-Sub")

DNO_REGIONS = {
    "10": "Eastern England",
    "11": "East Midlands",
    "12": "London",
    "13": "Merseyside and North Wales",
    "14": "West Midlands",
    "15": "North East England",
    "16": "North West England",
    "17": "Northern Scotland",
    "18": "Southern Scotland",
    "19": "South East England",
    "20": "Southern England",
    "21": "South Wales",
    "22": "South West England",
    "23": "Yorkshire",
}


class UKPriceError(Exception):
    """Base exception for price collector errors."""
    pass


@dataclass
class PricePoint:
    """A single price from the API."""

    overall_pence: float  # p/kWh
    timestamp: datetime


def format_date(day: date) -> str:
    """Format a date as DD-MM-YYYY, as the API expects."""
    return day.strftime("%d-%m-%Y")


def get_dno_by_code(code: str) -> str | None:
    return DNO_REGIONS.get(str(code))


def fetch_prices(
    dno: str,
    voltage: str,
    start: date,
    end: date,
    timeout: float = 30.0,
) -> list[PricePoint]:
    """Fetch prices for a DNO region and voltage level.

    Args:
        dno: DNO region code (10-23)
        voltage: Voltage level ('HV', 'LV' or 'LV-Sub')
        start: First day to fetch
        end: Last day to fetch

    Returns:
        List of PricePoint objects in API order
    """
    if voltage not in VOLTAGE_LEVELS:
        raise ValueError(f"Voltage must be one of {', '.join(VOLTAGE_LEVELS)}, got {voltage!r}")

    params = {
        "dno": dno,
        "voltage": voltage,
        "start": format_date(start),
        "end": format_date(end),
    }

    try:
        response = httpx.get(
            API_BASE_URL, params=params, headers={"Accept": "application/json"}, timeout=timeout
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise UKPriceError(f"HTTP error from price API: {e.response.status_code}")
    except httpx.HTTPError as e:
        raise UKPriceError(f"Network error connecting to price API: {e}")

    data = response.json()
    if data.get("status") != "success":
        raise UKPriceError(f"Price API returned status {data.get('status')!r}")

    prices = []
    for item in data.get("data", {}).get("data", []):
        try:
            # Timestamp format: "HH:MM DD-MM-YYYY"
            timestamp = datetime.strptime(item["Timestamp"], "%H:%M %d-%m-%Y")
            prices.append(PricePoint(overall_pence=float(item["Overall"]), timestamp=timestamp))
        except (KeyError, ValueError, TypeError):
            # Skip malformed entries
            continue

    return prices


def get_current_price(dno: str, voltage: str, today: date | None = None) -> PricePoint | None:
    """Most recent price for today, or None if unavailable."""
    today = today or date.today()
    try:
        prices = fetch_prices(dno, voltage, today, today)
    except UKPriceError as e:
        logger.warning("Could not fetch current price: %s", e)
        return None
    return prices[-1] if prices else None


def get_average_price(dno: str, voltage: str, start: date, end: date) -> float | None:
    """Mean price (p/kWh) over a date range, or None if unavailable."""
    try:
        prices = fetch_prices(dno, voltage, start, end)
    except UKPriceError as e:
        logger.warning("Could not fetch average price: %s", e)
        return None
    if not prices:
        return None
    return sum(p.overall_pence for p in prices) / len(prices)
