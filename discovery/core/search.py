"""Proximity search over provider profiles."""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from discovery.core.config import get_settings
from discovery.core.db import fetch_provider_candidates
from discovery.etl.attributes import matches_any, parse_attributes
from discovery.geo.coordinates import displayed_point, haversine_km, parse_bbox, validate_coordinates
from discovery.models import BoundingBox, ProviderDTO, ProviderRecord, SearchFilters

logger = logging.getLogger(__name__)

SEARCH_TYPES = {"escort": ("escort",), "club": ("club",), "both": ("escort", "club")}
DTO_TYPES = {"escort": "ESCORT", "club": "CLUB"}


def _short_id(provider_id: str) -> str:
    return provider_id[-6:]


def _handle_for(record: ProviderRecord) -> str:
    if record.display_name:
        return "@" + "_".join(record.display_name.lower().split())
    return f"@user_{_short_id(record.id)}"


def to_dto(record: ProviderRecord, precision: Optional[int] = None) -> ProviderDTO:
    lat, lng = displayed_point(record.lat, record.lng, precision)
    price_range = None
    if record.hourly_rate is not None:
        price_range = (record.hourly_rate, round(record.hourly_rate * 2))
    return ProviderDTO(
        id=record.id,
        type=DTO_TYPES.get(record.kind, record.kind.upper()),
        name=record.display_name or f"user_{_short_id(record.id)}",
        handle=_handle_for(record),
        lat=lat,
        lng=lng,
        avatar=record.avatar,
        is_active=record.is_active,
        services=parse_attributes(record.services).labels(),
        languages=parse_attributes(record.languages).labels(),
        price_range=price_range,
        city=record.city or None,
        verified=record.verified,
    )


def _passes_attributes(record: ProviderRecord, filters: SearchFilters) -> bool:
    if filters.services and not matches_any(parse_attributes(record.services), filters.services):
        return False
    if filters.languages and not matches_any(parse_attributes(record.languages), filters.languages):
        return False
    return True


def _order(records: List[ProviderRecord], bbox: Optional[BoundingBox]) -> List[ProviderRecord]:
    if bbox is None:
        return records
    center = bbox.center
    return sorted(records, key=lambda r: (haversine_km(center.lat, center.lng, r.lat, r.lng), r.id))


def _kinds_for(search_type: Optional[str]) -> Tuple[str, ...]:
    kinds = SEARCH_TYPES.get((search_type or "both").lower())
    if kinds is None:
        raise ValueError(f"unknown search type: {search_type!r}")
    return kinds


def search_providers(filters: SearchFilters, *, cap: Optional[int] = None) -> List[ProviderDTO]:
    """Run a discovery query; failures degrade to an empty list.

    Without a viewport the result is capped (``DEFAULT_RESULT_CAP``); with one
    the viewport bounds the result size. Results inside a viewport are ordered
    by distance to its center.
    """
    settings = get_settings()
    if cap is None:
        cap = settings.default_result_cap

    try:
        kinds = _kinds_for(filters.type)
        bbox = parse_bbox(filters.bbox) if filters.bbox else None
        if filters.bbox and bbox is None:
            logger.info("Ignoring malformed bbox %r; applying result cap", filters.bbox)
        limit = None if bbox is not None else cap

        rows = fetch_provider_candidates(bbox=bbox, price_max=filters.price_max, kinds=kinds, limit=limit)
        records = [ProviderRecord.from_row(row) for row in rows]
        if limit is not None:
            records = records[:limit]

        kept: List[ProviderRecord] = []
        dropped: List[str] = []
        for record in records:
            if not validate_coordinates(record.lat, record.lng):
                dropped.append(record.id)
                continue
            if bbox is not None and not bbox.contains(record.lat, record.lng):
                continue
            if record.kind not in kinds:
                continue
            if filters.price_max is not None and (record.hourly_rate is None or record.hourly_rate > filters.price_max):
                continue
            if _passes_attributes(record, filters):
                kept.append(record)
        if dropped:
            logger.debug("Dropped providers without valid coordinates: %s", dropped)

        return [to_dto(record, settings.coordinate_precision) for record in _order(kept, bbox)]
    except Exception as exc:  # noqa: BLE001
        logger.exception("Proximity search failed: %s", exc)
        return []


def search_all(filters: SearchFilters, *, cap: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Split results into escorts and clubs for the map payload."""
    dtos = search_providers(filters, cap=cap)
    return {
        "escorts": [dto.to_payload() for dto in dtos if dto.type == "ESCORT"],
        "clubs": [dto.to_payload() for dto in dtos if dto.type == "CLUB"],
    }


def build_filters(
    *,
    bbox: Optional[str] = None,
    price_max: Any = None,
    services: Iterable[str] = (),
    languages: Iterable[str] = (),
    search_type: Optional[str] = None,
) -> SearchFilters:
    """Normalize raw request values into ``SearchFilters``; raises ValueError on a bad type."""
    price = None
    if price_max not in (None, ""):
        try:
            price = float(price_max)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric priceMax %r", price_max)
        if price is not None and not math.isfinite(price):
            logger.debug("Ignoring non-finite priceMax %r", price_max)
            price = None
    normalized_type = (search_type or "both").lower()
    _kinds_for(normalized_type)
    return SearchFilters(
        bbox=bbox or None,
        price_max=price,
        services=tuple(s.strip() for s in services if s and s.strip()),
        languages=tuple(l.strip() for l in languages if l and l.strip()),
        type=normalized_type,
    )
