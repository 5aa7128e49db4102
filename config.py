"""Runtime settings read from the environment."""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

DEFAULT_API_URL = "http://localhost:5000/api/v1"
DEFAULT_DATABASE_URL = "sqlite:///./dashboard.db"
DEFAULT_MONTHLY_ALLOWANCE = Decimal("1000")


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    database_url: str
    monthly_allowance: Decimal


def _parse_decimal(value: str | None, default: Decimal) -> Decimal:
    if value is None or not value.strip():
        return default
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        return default
    if not parsed.is_finite() or parsed < 0:
        return default
    return parsed


def load_settings() -> Settings:
    return Settings(
        api_base_url=os.getenv("DASHBOARD_API_URL", DEFAULT_API_URL).rstrip("/"),
        database_url=os.getenv("DASHBOARD_DATABASE_URL", DEFAULT_DATABASE_URL),
        monthly_allowance=_parse_decimal(
            os.getenv("DASHBOARD_MONTHLY_ALLOWANCE"), DEFAULT_MONTHLY_ALLOWANCE
        ),
    )
