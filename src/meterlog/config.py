"""Configuration from environment variables and YAML files."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .models import UserPreferences

# Load environment variables from .env file
load_dotenv()

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "meterlog" / "meterlog.db"
DEFAULT_METER_ID = "default"
CURRENCIES = {"GBP": "£", "USD": "$", "EUR": "€"}
THEMES = {"dark", "light"}


def get_db_path() -> Path:
    return Path(os.environ.get("METERLOG_DB_PATH", DEFAULT_DB_PATH))


def get_meter_id() -> str:
    return os.environ.get("METERLOG_METER_ID", DEFAULT_METER_ID)


def find_config_file(filename: str, env_var: str | None = None) -> Path | None:
    """Find a YAML config file in the usual places, or None."""
    candidates = []
    if env_var and os.environ.get(env_var):
        candidates.append(Path(os.environ[env_var]))
    candidates += [
        Path.cwd() / "config" / filename,
        Path.home() / ".config" / "meterlog" / filename,
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def _rate(data: dict, key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    if rate < 0:
        raise ConfigError(f"{key} must not be negative, got {rate}")
    return rate


def parse_preferences(data: dict) -> UserPreferences:
    """Build preferences from a mapping, validating rates and choices."""
    defaults = UserPreferences()
    currency = str(data.get("currency", defaults.currency)).upper()
    if currency not in CURRENCIES:
        raise ConfigError(f"Unsupported currency: {currency}")
    theme = data.get("theme", defaults.theme)
    if theme not in THEMES:
        raise ConfigError(f"Unsupported theme: {theme}")

    return UserPreferences(
        unit_rate=_rate(data, "unit_rate", defaults.unit_rate),
        standing_charge=_rate(data, "standing_charge", defaults.standing_charge),
        currency=currency,
        theme=theme,
        notifications=bool(data.get("notifications", defaults.notifications)),
        time_of_use_rates=list(data.get("time_of_use_rates") or []),
    )


def load_preferences(config_path: Path | None = None) -> UserPreferences:
    """Load user preferences from YAML, falling back to defaults.

    METERLOG_UNIT_RATE overrides the unit rate from the file.
    """
    path = config_path or find_config_file("preferences.yaml", "METERLOG_CONFIG")
    data = {}
    if path is not None:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")

    if os.environ.get("METERLOG_UNIT_RATE"):
        data = {**data, "unit_rate": os.environ["METERLOG_UNIT_RATE"]}

    return parse_preferences(data)


def currency_symbol(preferences: UserPreferences) -> str:
    return CURRENCIES.get(preferences.currency, "")
