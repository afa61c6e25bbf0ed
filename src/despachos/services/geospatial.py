"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely import wkb
from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def point_in_rings(lat: float, lon: float, rings: Sequence[Sequence[tuple[float, float]]]) -> bool:
    """Return True if the point lies inside any of the (lng, lat) rings.

    Rings with fewer than three vertices cannot enclose anything and are skipped.
    """
    point = Point(lon, lat)
    return any(Polygon(ring).covers(point) for ring in rings if len(ring) >= 3)


def point_from_wkb_hex(text: str) -> tuple[float, float] | None:
    """Decode a hex (E)WKB point, as PostGIS columns are returned, into (lng, lat)."""
    try:
        geometry = wkb.loads(text, hex=True)
    except (GEOSException, ValueError):
        return None
    if geometry.geom_type != "Point" or geometry.is_empty:
        return None
    return (geometry.x, geometry.y)
