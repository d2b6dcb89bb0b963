"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_DEFAULT_COUNTRY_CODES = "ch,fr,it,de"


@dataclass(frozen=True)
class Settings:
    database_url: str
    server_port: int = 8080
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "ProximityDiscovery/1.0"
    geocode_timeout: float = 5.0
    geocode_country_codes: Tuple[str, ...] = ("ch", "fr", "it", "de")
    default_result_cap: int = 50
    coordinate_precision: Optional[int] = None
    geocode_cache_seconds: int = 3600
    schedule_timezone: str = "Europe/Zurich"


def _split_codes(raw: str) -> Tuple[str, ...]:
    return tuple(code.strip().lower() for code in raw.split(",") if code.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    server_port = int(os.getenv("PORT") or os.getenv("SERVER_PORT", "8080"))
    nominatim_url = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/")
    nominatim_user_agent = os.getenv("NOMINATIM_USER_AGENT", "ProximityDiscovery/1.0")
    geocode_timeout = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", "5"))
    geocode_country_codes = _split_codes(os.getenv("GEOCODE_COUNTRY_CODES", _DEFAULT_COUNTRY_CODES))
    default_result_cap = int(os.getenv("DEFAULT_RESULT_CAP", "50"))
    precision_raw = os.getenv("COORDINATE_PRECISION")
    coordinate_precision = int(precision_raw) if precision_raw and precision_raw.strip() else None
    geocode_cache_seconds = int(os.getenv("GEOCODE_CACHE_SECONDS", "3600"))
    schedule_timezone = os.getenv("SCHEDULE_TIMEZONE", "Europe/Zurich")

    if not database_url:
        logger.warning("DATABASE_URL is not set; provider searches will return no results.")
    if "nominatim.openstreetmap.org" in nominatim_url and not os.getenv("NOMINATIM_USER_AGENT"):
        logger.warning("NOMINATIM_USER_AGENT is not configured; the public Nominatim policy requires one.")

    return Settings(
        database_url=database_url,
        server_port=server_port,
        nominatim_url=nominatim_url,
        nominatim_user_agent=nominatim_user_agent,
        geocode_timeout=geocode_timeout,
        geocode_country_codes=geocode_country_codes,
        default_result_cap=default_result_cap,
        coordinate_precision=coordinate_precision,
        geocode_cache_seconds=geocode_cache_seconds,
        schedule_timezone=schedule_timezone,
    )
