"""CLI job to resolve a place name (or coordinates) and print the match as JSON."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from discovery.geo.geocoding import resolve_city, reverse_resolve

logger = logging.getLogger(__name__)


def run_geocode_job(*, place: Optional[str], reverse: Optional[List[float]]) -> int:
    if reverse:
        lat, lng = reverse
        logger.info("Reverse geocoding lat=%s lng=%s", lat, lng)
        result = reverse_resolve(lat, lng)
    else:
        if not place or not place.strip():
            raise ValueError("A place name or --reverse LAT LNG is required")
        logger.info("Geocoding place=%s", place)
        result = resolve_city(place)

    if result is None:
        logger.warning("No location found")
        return 1

    print(json.dumps(result.to_payload(), ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve a place name to coordinates")
    parser.add_argument("place", nargs="?", help="City or place name, e.g. 'Lausanne'")
    parser.add_argument(
        "--reverse",
        dest="reverse",
        nargs=2,
        type=float,
        metavar=("LAT", "LNG"),
        help="Look up the place at the given coordinates instead",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        code = run_geocode_job(place=args.place, reverse=args.reverse)
    except ValueError as exc:
        parser.error(str(exc))
    sys.exit(code)


if __name__ == "__main__":
    main()
