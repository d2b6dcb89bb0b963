"""Place-name resolution: local gazetteer first, Nominatim as fallback."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from discovery.core.config import get_settings
from discovery.geo.coordinates import validate_coordinates
from discovery.models import GeocodeResult
from discovery.vendors import nominatim

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

GAZETTEER: Tuple[Tuple[str, float, float], ...] = (
    ("Genève", 46.2044, 6.1432),
    ("Lausanne", 46.5197, 6.6323),
    ("Zurich", 47.3769, 8.5417),
    ("Berne", 46.9481, 7.4474),
    ("Bâle", 47.5596, 7.5886),
    ("Lucerne", 47.0502, 8.3093),
    ("Montreux", 46.4312, 6.9123),
    ("Neuchâtel", 47.0000, 6.9500),
    ("Fribourg", 46.8059, 7.1619),
    ("Sion", 46.2276, 7.3608),
)


def list_gazetteer() -> List[Dict[str, Any]]:
    return [{"name": name, "lat": lat, "lng": lng} for name, lat, lng in GAZETTEER]


def find_in_gazetteer(query: str) -> Optional[GeocodeResult]:
    """Case-insensitive substring match in either direction."""
    needle = query.strip().casefold()
    if not needle:
        return None
    for name, lat, lng in GAZETTEER:
        candidate = name.casefold()
        if needle in candidate or candidate in needle:
            return GeocodeResult(
                lat=lat,
                lng=lng,
                display_name=f"{name}, Suisse",
                city=name,
                country="Suisse",
                source="predefined",
            )
    return None


def _city_from_address(address: Dict[str, Any]) -> Optional[str]:
    return address.get("city") or address.get("town") or address.get("village")


def _to_result(payload: Dict[str, Any], fallback_city: Optional[str]) -> Optional[GeocodeResult]:
    try:
        lat = float(payload.get("lat"))
        lng = float(payload.get("lon"))
    except (TypeError, ValueError):
        logger.debug("Geocoder returned non-numeric coordinates: %s", payload)
        return None
    if not validate_coordinates(lat, lng):
        logger.debug("Geocoder returned out-of-range coordinates: %s, %s", lat, lng)
        return None

    address = payload.get("address") or {}
    return GeocodeResult(
        lat=lat,
        lng=lng,
        display_name=payload.get("display_name") or fallback_city or "",
        city=_city_from_address(address) or fallback_city,
        country=address.get("country"),
        source="external",
    )


def resolve_city(name: Optional[str]) -> Optional[GeocodeResult]:
    """Resolve a free-text place name; returns None on any miss or failure."""
    if not name or len(name.strip()) < MIN_QUERY_LENGTH:
        return None
    query = name.strip()

    predefined = find_in_gazetteer(query)
    if predefined is not None:
        return predefined

    settings = get_settings()
    try:
        results = nominatim.search(
            query,
            base_url=settings.nominatim_url,
            user_agent=settings.nominatim_user_agent,
            country_codes=settings.geocode_country_codes,
            limit=1,
            timeout=settings.geocode_timeout,
        )
    except (requests.RequestException, nominatim.NominatimError, ValueError) as exc:
        logger.warning("Geocoding failed for %r: %s", query, exc)
        return None

    if not results:
        logger.info("No geocoding match for %r", query)
        return None
    return _to_result(results[0], fallback_city=query)


def reverse_resolve(lat: Any, lng: Any) -> Optional[GeocodeResult]:
    """Reverse lookup through Nominatim; no local fallback."""
    if not validate_coordinates(lat, lng):
        return None

    settings = get_settings()
    try:
        payload = nominatim.reverse(
            lat,
            lng,
            base_url=settings.nominatim_url,
            user_agent=settings.nominatim_user_agent,
            timeout=settings.geocode_timeout,
        )
    except (requests.RequestException, nominatim.NominatimError, ValueError) as exc:
        logger.warning("Reverse geocoding failed for %s,%s: %s", lat, lng, exc)
        return None

    if payload is None:
        return None
    return _to_result(payload, fallback_city=None)
