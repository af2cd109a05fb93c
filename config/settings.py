import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env before reading anything below
load_dotenv()

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    if origin.strip()
]


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {value!r}")


@dataclass(frozen=True)
class RotaSettings:
    """Tunable constants for the rota engine. Passed explicitly into every computation."""
    leave_year_start_month: int = 6      # June 1st - May 31st
    payroll_cutoff_day: int = 25         # current month becomes "ready" after this day
    forecast_months: int = 12
    working_days_per_month: int = 20
    default_leave_allowance: float = 15.0
    tenured_leave_allowance: float = 18.0


ROTA_SETTINGS = RotaSettings(
    leave_year_start_month=_int_env("ROTA_LEAVE_YEAR_START_MONTH", 6),
    payroll_cutoff_day=_int_env("ROTA_PAYROLL_CUTOFF_DAY", 25),
    forecast_months=_int_env("ROTA_FORECAST_MONTHS", 12),
    working_days_per_month=_int_env("ROTA_WORKING_DAYS_PER_MONTH", 20),
    default_leave_allowance=float(_int_env("ROTA_DEFAULT_LEAVE_ALLOWANCE", 15)),
    tenured_leave_allowance=float(_int_env("ROTA_TENURED_LEAVE_ALLOWANCE", 18)),
)
