"""Coordinate validation and viewport parsing helpers."""

import logging
import math
from numbers import Real
from typing import Any, Optional, Sequence, Tuple

from discovery.models import BoundingBox

logger = logging.getLogger(__name__)


def validate_coordinates(lat: Any, lng: Any) -> bool:
    """Return True when both values are finite numbers inside WGS84 bounds."""
    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if not math.isfinite(value):
            return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def _to_number(token: Any) -> Optional[float]:
    if isinstance(token, bool):
        return None
    if isinstance(token, str):
        token = token.strip()
        if not token:
            return None
    try:
        value = float(token)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_bbox(raw: Any) -> Optional[BoundingBox]:
    """Parse ``"minLng,minLat,maxLng,maxLat"`` or a 4-number sequence.

    Malformed input yields None rather than an exception; inverted corners are
    normalized by ``BoundingBox`` itself.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        tokens: Sequence[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        tokens = raw
    else:
        logger.debug("Unsupported bbox type: %s", type(raw).__name__)
        return None

    if len(tokens) != 4:
        logger.debug("Rejecting bbox with %d parts: %r", len(tokens), raw)
        return None

    numbers = [_to_number(token) for token in tokens]
    if any(number is None for number in numbers):
        logger.debug("Rejecting bbox with non-numeric part: %r", raw)
        return None

    lng1, lat1, lng2, lat2 = numbers
    if not validate_coordinates(lat1, lng1) or not validate_coordinates(lat2, lng2):
        logger.debug("Rejecting bbox with out-of-range corner: %r", raw)
        return None

    return BoundingBox(min_lng=lng1, min_lat=lat1, max_lng=lng2, max_lat=lat2)


def displayed_point(lat: float, lng: float, precision: Optional[int] = None) -> Tuple[float, float]:
    """Map stored coordinates to the ones shown publicly.

    ``precision`` rounds both axes to that many decimals; None keeps them as stored.
    """
    if precision is None:
        return lat, lng
    return round(lat, precision), round(lng, precision)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    radius_km = 6371.0088
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * radius_km * math.asin(math.sqrt(a))
