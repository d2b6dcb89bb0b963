"""Read-only database helpers for provider profiles."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import extras, pool

from discovery.core.config import get_settings
from discovery.models import BoundingBox

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

_PROVIDER_COLUMNS = """
    id,
    kind,
    display_name,
    latitude,
    longitude,
    city,
    is_verified,
    rate_1h,
    avatar_url,
    is_active,
    services,
    languages,
    time_slots,
    available_now
"""


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        # Reads only; drop any implicit transaction before returning the connection.
        broken = False
        try:
            conn.rollback()
        except psycopg2.Error as exc:
            logger.warning("Discarding broken database connection: %s", exc)
            broken = True
        finally:
            pg_pool.putconn(conn, close=broken)


def _build_candidate_query(
    bbox: Optional[BoundingBox],
    price_max: Optional[float],
    kinds: Sequence[str],
    limit: Optional[int],
) -> Tuple[str, Dict[str, Any]]:
    conditions = ["latitude IS NOT NULL", "longitude IS NOT NULL"]
    params: Dict[str, Any] = {}

    if kinds:
        conditions.append("kind = ANY(%(kinds)s)")
        params["kinds"] = list(kinds)
    if bbox is not None:
        conditions.append("latitude > %(min_lat)s AND latitude < %(max_lat)s")
        conditions.append("longitude > %(min_lng)s AND longitude < %(max_lng)s")
        params.update(
            min_lat=bbox.min_lat,
            max_lat=bbox.max_lat,
            min_lng=bbox.min_lng,
            max_lng=bbox.max_lng,
        )
    if price_max is not None:
        conditions.append("rate_1h <= %(price_max)s")
        params["price_max"] = price_max

    sql = f"SELECT {_PROVIDER_COLUMNS} FROM provider_profiles WHERE " + " AND ".join(conditions) + " ORDER BY id"
    if limit is not None:
        sql += " LIMIT %(limit)s"
        params["limit"] = limit
    return sql, params


def fetch_provider_candidates(
    *,
    bbox: Optional[BoundingBox] = None,
    price_max: Optional[float] = None,
    kinds: Sequence[str] = (),
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Return provider rows with coordinates, narrowed by viewport, price and kind."""
    sql, params = _build_candidate_query(bbox, price_max, kinds, limit)
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
    logger.debug("Fetched %d provider candidates", len(rows))
    return [dict(row) for row in rows]


def fetch_provider(provider_id: str) -> Optional[Dict[str, Any]]:
    sql = f"SELECT {_PROVIDER_COLUMNS} FROM provider_profiles WHERE id = %(id)s"
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, {"id": provider_id})
            row = cur.fetchone()
    return dict(row) if row else None


def ping() -> bool:
    try:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
        return True
    except (psycopg2.Error, RuntimeError) as exc:
        logger.warning("Database ping failed: %s", exc)
        return False
