"""HTTP entrypoint exposing discovery, geocoding and availability reads."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from flask import Flask, jsonify, request

from discovery.core import db
from discovery.core.availability import availability_for
from discovery.core.config import get_settings
from discovery.core.search import build_filters, search_all
from discovery.geo.geocoding import list_gazetteer, resolve_city, reverse_resolve
from discovery.models import UNKNOWN, AvailabilitySnapshot

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)


def _csv_param(name: str) -> List[str]:
    values: List[str] = []
    for raw in request.args.getlist(name):
        values.extend(part.strip() for part in raw.split(","))
    return [value for value in values if value]


def _float_param(name: str) -> Optional[float]:
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


def _now() -> datetime:
    return datetime.now(ZoneInfo(get_settings().schedule_timezone))


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; does not touch the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "server_port_config": settings.server_port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/ready")
def readiness() -> Any:
    return jsonify({"ready": db.ping()}), 200


@app.get("/geo/search")
def geo_search() -> Any:
    """
    Map discovery query.
    Optional params: bbox ("minLng,minLat,maxLng,maxLat"), priceMax, services, languages, type.
    """
    try:
        filters = build_filters(
            bbox=request.args.get("bbox"),
            price_max=request.args.get("priceMax"),
            services=_csv_param("services"),
            languages=_csv_param("languages"),
            search_type=request.args.get("type"),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    results = search_all(filters)
    logger.info(
        "Geo search bbox=%s services=%s languages=%s -> escorts=%d clubs=%d",
        filters.bbox,
        list(filters.services),
        list(filters.languages),
        len(results["escorts"]),
        len(results["clubs"]),
    )
    return jsonify(results), 200


def _geocode_response(result) -> Any:
    if result is None:
        return jsonify({"error": "location not found"}), 404
    response = jsonify(result.to_payload())
    response.headers["Cache-Control"] = f"public, max-age={get_settings().geocode_cache_seconds}"
    return response, 200


@app.get("/geocode")
def geocode_city() -> Any:
    city = (request.args.get("city") or "").strip()
    if not city:
        return jsonify({"error": "city is required"}), 400
    return _geocode_response(resolve_city(city))


@app.get("/geocode/reverse")
def geocode_reverse() -> Any:
    try:
        lat = _float_param("lat")
        lng = _float_param("lng")
    except ValueError:
        return jsonify({"error": "lat and lng must be numeric"}), 400
    if lat is None or lng is None:
        return jsonify({"error": "lat and lng are required"}), 400
    return _geocode_response(reverse_resolve(lat, lng))


@app.get("/geocode/cities")
def gazetteer() -> Any:
    return jsonify({"cities": list_gazetteer()}), 200


@app.get("/providers/<provider_id>/availability")
def provider_availability(provider_id: str) -> Any:
    try:
        row = db.fetch_provider(provider_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Availability lookup failed for %s: %s", provider_id, exc)
        snapshot = AvailabilitySnapshot(is_available=False, status=UNKNOWN, message="Schedule unavailable")
        return jsonify(snapshot.to_payload()), 200

    if row is None:
        return jsonify({"error": "provider not found"}), 404

    snapshot = availability_for(row.get("time_slots"), bool(row.get("available_now")), now=_now())
    return jsonify(snapshot.to_payload()), 200


def main() -> None:
    settings = get_settings()
    port = settings.server_port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
