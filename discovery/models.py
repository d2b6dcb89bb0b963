"""Core data models shared by the discovery and availability services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Iterator, List, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_ATTRIBUTE_WEIGHT = 5

AVAILABLE_NOW = "AVAILABLE_NOW"
SCHEDULED_LATER = "SCHEDULED_LATER"
UNAVAILABLE = "UNAVAILABLE"
UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned viewport rectangle; corners are re-sorted on construction."""

    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def __post_init__(self) -> None:
        lngs = sorted((self.min_lng, self.max_lng))
        lats = sorted((self.min_lat, self.max_lat))
        object.__setattr__(self, "min_lng", lngs[0])
        object.__setattr__(self, "max_lng", lngs[1])
        object.__setattr__(self, "min_lat", lats[0])
        object.__setattr__(self, "max_lat", lats[1])

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(lat=(self.min_lat + self.max_lat) / 2, lng=(self.min_lng + self.max_lng) / 2)

    def contains(self, lat: float, lng: float) -> bool:
        """Strict containment on both axes."""
        return self.min_lat < lat < self.max_lat and self.min_lng < lng < self.max_lng


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of decoding a stored blob.

    ``ok`` is False only when the input was present but malformed, so callers
    can tell "no data" apart from "bad data" while still using ``value``.
    """

    value: T
    ok: bool = True
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Attribute:
    label: str
    weight: int = DEFAULT_ATTRIBUTE_WEIGHT


@dataclass(frozen=True)
class AttributeList:
    """Ordered, label-unique collection of weighted attributes."""

    items: Tuple[Attribute, ...] = ()

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def labels(self) -> List[str]:
        return [item.label for item in self.items]

    def weights(self) -> Dict[str, int]:
        return {item.label: item.weight for item in self.items}


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class ProviderRecord:
    """Read-only snapshot of a provider profile row."""

    id: str
    kind: str = "escort"
    display_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    city: Optional[str] = None
    verified: bool = False
    hourly_rate: Optional[float] = None
    avatar: Optional[str] = None
    is_active: bool = True
    services: Any = None
    languages: Any = None
    schedule: Any = None
    available_now: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProviderRecord":
        return cls(
            id=str(row["id"]),
            kind=(row.get("kind") or "escort").lower(),
            display_name=row.get("display_name"),
            lat=_as_float(row.get("latitude")),
            lng=_as_float(row.get("longitude")),
            city=row.get("city"),
            verified=bool(row.get("is_verified")),
            hourly_rate=_as_float(row.get("rate_1h")),
            avatar=row.get("avatar_url"),
            is_active=row.get("is_active", True) is not False,
            services=row.get("services"),
            languages=row.get("languages"),
            schedule=row.get("time_slots"),
            available_now=bool(row.get("available_now")),
        )


@dataclass(frozen=True, slots=True)
class SearchFilters:
    bbox: Optional[str] = None
    price_max: Optional[float] = None
    services: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    type: str = "both"


@dataclass(slots=True)
class ProviderDTO:
    """Public map pin returned by proximity search."""

    id: str
    type: str
    name: str
    handle: str
    lat: float
    lng: float
    avatar: Optional[str] = None
    is_active: bool = True
    services: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    price_range: Optional[Tuple[float, float]] = None
    city: Optional[str] = None
    verified: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "handle": self.handle,
            "lat": self.lat,
            "lng": self.lng,
            "isActive": self.is_active,
            "services": list(self.services),
            "languages": list(self.languages),
            "verified": self.verified,
        }
        if self.avatar:
            payload["avatar"] = self.avatar
        if self.price_range is not None:
            payload["priceRange"] = {"min": self.price_range[0], "max": self.price_range[1]}
        if self.city:
            payload["city"] = self.city
        return payload


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    lat: float
    lng: float
    display_name: str
    city: Optional[str] = None
    country: Optional[str] = None
    source: str = "external"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "lat": self.lat,
            "lng": self.lng,
            "displayName": self.display_name,
            "city": self.city,
            "country": self.country,
            "source": self.source,
        }


@dataclass(frozen=True, slots=True)
class ScheduleSlot:
    """Weekly recurring slot; ``end_minute <= start_minute`` runs past midnight."""

    weekday: int
    start_minute: int
    end_minute: int


@dataclass(frozen=True)
class WeeklySchedule:
    slots: Tuple[ScheduleSlot, ...] = ()
    pause: Optional[Tuple[datetime, datetime]] = None
    absences: Tuple[Tuple[datetime, datetime], ...] = ()


@dataclass(frozen=True, slots=True)
class AvailabilitySnapshot:
    is_available: bool
    status: str
    message: str
    next_change_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "isAvailable": self.is_available,
            "status": self.status,
            "message": self.message,
        }
        if self.next_change_at is not None:
            payload["nextChangeAt"] = self.next_change_at.isoformat()
        return payload
