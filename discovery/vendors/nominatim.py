"""Client utilities for the Nominatim (OpenStreetMap) geocoding API."""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
DEFAULT_TIMEOUT = 5


class NominatimError(RuntimeError):
    """Raised when Nominatim answers with an unexpected payload."""


def _headers(user_agent: str) -> Dict[str, str]:
    # Nominatim's usage policy rejects anonymous clients.
    return {"User-Agent": user_agent, "Accept": "application/json"}


def search(
    query: str,
    *,
    base_url: str,
    user_agent: str,
    country_codes: Iterable[str] = (),
    limit: int = 1,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[Dict[str, Any]]:
    params: Dict[str, Any] = {"q": query, "format": "json", "addressdetails": 1, "limit": limit}
    codes = ",".join(code for code in country_codes if code)
    if codes:
        params["countrycodes"] = codes
    response = _SESSION.get(f"{base_url}/search", params=params, headers=_headers(user_agent), timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, list):
        logger.error("search returned non-list payload: %s", str(payload)[:200])
        raise NominatimError("unexpected search payload")
    return payload


def reverse(
    lat: float,
    lng: float,
    *,
    base_url: str,
    user_agent: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> Optional[Dict[str, Any]]:
    params = {"lat": lat, "lon": lng, "format": "json", "addressdetails": 1}
    response = _SESSION.get(f"{base_url}/reverse", params=params, headers=_headers(user_agent), timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if not payload:
        return None
    if not isinstance(payload, dict):
        logger.error("reverse returned non-object payload: %s", str(payload)[:200])
        raise NominatimError("unexpected reverse payload")
    if "error" in payload:
        # "Unable to geocode" is how Nominatim reports open sea and similar misses.
        logger.info("reverse lookup found nothing: %s", payload.get("error"))
        return None
    return payload
