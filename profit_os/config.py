"""
Application configuration management.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path("./data")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Application configuration with environment overrides."""

    # Paths
    data_dir: Path = field(default_factory=_default_data_dir)

    # Environment
    app_env: str = field(default_factory=lambda: os.getenv("APP_ENV", "dev"))

    # Cache settings
    cache_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("CACHE_TTL_SECONDS", "3600")))

    # Currency
    reporting_currency: str = field(default_factory=lambda: os.getenv("REPORTING_CURRENCY", "GBP").upper())
    rates_api_url: str = field(default_factory=lambda: os.getenv("RATES_API_URL", "https://api.frankfurter.app/latest"))
    rates_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("RATES_TIMEOUT_SECONDS", "5")))

    # Zone that shift timestamps with an offset are converted to before bucketing by day
    schedule_timezone: str = field(default_factory=lambda: os.getenv("SCHEDULE_TIMEZONE", "Europe/London"))

    # Engine policy defaults
    cost_source: str = field(default_factory=lambda: os.getenv("COST_SOURCE", "pay_records_then_profile"))
    revenue_mode: str = field(default_factory=lambda: os.getenv("REVENUE_MODE", "net_of_vat"))
    share_mode: str = field(default_factory=lambda: os.getenv("SHARE_MODE", "days"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = field(default_factory=lambda: _env_flag("LOG_JSON", "false"))

    # Loader
    max_load_workers: int = field(default_factory=lambda: int(os.getenv("MAX_LOAD_WORKERS", "6")))

    @property
    def processed_dir(self) -> Path:
        return self.data_dir / "processed"

    @property
    def reports_dir(self) -> Path:
        return self.data_dir / "reports"

    @property
    def is_prod(self) -> bool:
        return self.app_env.lower() == "prod"


# Global config instance
config = AppConfig()


# MRR is stored VAT-inclusive at 20%
MRR_TAX_DIVISOR = 1.2

# Monthly multipliers by pay frequency
PAY_FREQUENCY_MONTHLY_FACTOR: Dict[str, float] = {
    "monthly": 1.0,
    "annually": 1 / 12,
    "annual": 1 / 12,
    "yearly": 1 / 12,
    "weekly": 4.33,
    "bi-weekly": 2.17,
    "biweekly": 2.17,
    "fortnightly": 2.17,
}

# Currencies requested from the rate source
RATE_CURRENCIES = ["GBP", "USD", "EUR", "INR", "AED", "AUD", "CAD", "PHP", "ZAR", "NGN"]

# Static table used when the rate source is unreachable (multipliers to GBP)
FALLBACK_RATES: Dict[str, float] = {
    "GBP": 1.0,
    "EUR": 0.85,
    "USD": 0.79,
    "INR": 0.0095,
    "AED": 0.21,
    "AUD": 0.52,
    "CAD": 0.58,
    "PHP": 0.014,
    "ZAR": 0.044,
    "NGN": 0.00052,
}


# Table file names
TABLE_FILES = {
    "clients": "clients",
    "patterns": "recurring_shift_patterns",
    "pattern_exceptions": "shift_pattern_exceptions",
    "schedules": "staff_schedules",
    "pay_records": "staff_pay_records",
    "recurring_bonuses": "recurring_bonuses",
    "overtime": "staff_overtime",
    "staff_profiles": "staff_hr_profiles",
}

# Tables the report cannot be built without
CORE_TABLES = ["clients"]

# Source-system column names mapped to canonical names, per table
_STAFF_ALIASES = {"user_id": "staff_id", "staff_user_id": "staff_id"}

COLUMN_ALIASES = {
    "clients": {"id": "client_id", "client_name": "name"},
    "patterns": {**_STAFF_ALIASES, "id": "pattern_id"},
    "pattern_exceptions": {},
    "schedules": {**_STAFF_ALIASES, "id": "schedule_id"},
    "pay_records": {**_STAFF_ALIASES, "type": "record_type"},
    "recurring_bonuses": dict(_STAFF_ALIASES),
    "overtime": {**_STAFF_ALIASES, "date": "overtime_date"},
    "staff_profiles": dict(_STAFF_ALIASES),
}

# Required columns (hard fail if missing)
REQUIRED_COLUMNS = {
    "clients": ["name", "mrr"],
    "patterns": [
        "staff_id",
        "client_name",
        "days_of_week",
        "recurrence_interval",
        "start_date",
    ],
    "pattern_exceptions": ["pattern_id", "exception_date"],
    "schedules": ["staff_id", "client_name", "start_datetime", "end_datetime"],
    "pay_records": ["staff_id", "record_type", "amount", "pay_date"],
    "recurring_bonuses": ["staff_id", "amount", "start_date"],
    "overtime": ["staff_id", "hours", "overtime_date"],
    "staff_profiles": ["staff_id", "base_salary"],
}

# Optional columns (soft warn if missing)
OPTIONAL_COLUMNS = {
    "clients": ["client_id", "status"],
    "patterns": [
        "pattern_id",
        "end_date",
        "start_time",
        "end_time",
        "hourly_rate",
        "currency",
    ],
    "schedules": ["hourly_rate", "currency"],
    "pay_records": ["currency", "pay_period_start", "pay_period_end"],
    "recurring_bonuses": ["currency", "end_date"],
    "overtime": ["hourly_rate", "currency"],
    "staff_profiles": ["display_name", "base_currency", "pay_frequency"],
}

# Formatting constants
FORMAT_CURRENCY = "£{:,.0f}"
FORMAT_CURRENCY_DECIMAL = "£{:,.2f}"
FORMAT_HOURS = "{:,.1f}"
FORMAT_PERCENT = "{:.1f}%"
FORMAT_COUNT = "{:,}"
