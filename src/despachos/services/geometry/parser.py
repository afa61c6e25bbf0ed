"""Geofence geometry parsing and centroid computation.

Stored geofences come in four shapes, modelled as a tagged union and dispatched
in a single place:

* ``WktPolygon`` - text starting with ``POLYGON``
* ``WktCollection`` - text starting with ``GEOMETRYCOLLECTION``
* ``GeoJsonPolygon`` - mapping with ``type == "Polygon"``
* ``GeoJsonCollection`` - mapping with ``type == "GeometryCollection"``

Only the outer ring of each polygon is used. The centroid is the plain average
of all collected vertices (not an area-weighted centroid), so multi-polygon
geofences lean towards the polygon with more vertices.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from ...models.domain import Centroid
from ..geospatial import point_from_wkb_hex
from .wkt import (
    COLLECTION_KEYWORD,
    POINT_KEYWORD,
    POLYGON_KEYWORD,
    LngLat,
    find_polygon_spans,
    outer_ring,
    parse_coordinate_pairs,
)


@dataclass(slots=True, frozen=True)
class WktPolygon:
    text: str


@dataclass(slots=True, frozen=True)
class WktCollection:
    text: str


@dataclass(slots=True, frozen=True)
class GeoJsonPolygon:
    coordinates: Sequence[Any]


@dataclass(slots=True, frozen=True)
class GeoJsonCollection:
    geometries: Sequence[Any]


GeofenceGeometry = Union[WktPolygon, WktCollection, GeoJsonPolygon, GeoJsonCollection]


def _as_sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, (list, tuple)):
        return value
    return ()


def _classify_mapping(value: Mapping[str, Any]) -> GeofenceGeometry | None:
    geometry_type = value.get("type")
    if geometry_type == "Polygon":
        return GeoJsonPolygon(_as_sequence(value.get("coordinates")))
    if geometry_type == "GeometryCollection":
        return GeoJsonCollection(_as_sequence(value.get("geometries")))
    return None


def classify_geometry(value: Any) -> GeofenceGeometry | None:
    """Identify the shape of a stored geofence; None when empty or unrecognised."""
    if not value:
        return None
    if isinstance(value, Mapping):
        return _classify_mapping(value)
    if not isinstance(value, str):
        return None

    stripped = value.strip()
    if stripped.startswith("{"):
        # JSON columns sometimes arrive serialised
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            return None
        return _classify_mapping(decoded) if isinstance(decoded, Mapping) else None

    upper = stripped.upper()
    if upper.startswith(COLLECTION_KEYWORD):
        return WktCollection(stripped)
    if upper.startswith(POLYGON_KEYWORD):
        return WktPolygon(stripped)
    return None


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _geojson_outer_ring(coordinates: Sequence[Any]) -> list[LngLat]:
    if not coordinates:
        return []
    ring = _as_sequence(coordinates[0])
    points: list[LngLat] = []
    for position in ring:
        position = _as_sequence(position)
        if len(position) < 2:
            continue
        lng, lat = position[0], position[1]
        if _is_finite_number(lng) and _is_finite_number(lat):
            points.append((float(lng), float(lat)))
    return points


def extract_rings(geometry: GeofenceGeometry | None) -> list[list[LngLat]]:
    """Return the outer ring of every polygon in the geometry as (lng, lat) pairs."""
    if isinstance(geometry, WktPolygon):
        spans = find_polygon_spans(geometry.text)
        return [outer_ring(spans[0])] if spans else []
    if isinstance(geometry, WktCollection):
        return [outer_ring(span) for span in find_polygon_spans(geometry.text)]
    if isinstance(geometry, GeoJsonPolygon):
        return [_geojson_outer_ring(geometry.coordinates)]
    if isinstance(geometry, GeoJsonCollection):
        return [
            _geojson_outer_ring(_as_sequence(member.get("coordinates")))
            for member in geometry.geometries
            if isinstance(member, Mapping) and member.get("type") == "Polygon"
        ]
    return []


def extract_points(geometry: GeofenceGeometry | None) -> list[LngLat]:
    return [point for ring in extract_rings(geometry) for point in ring]


def centroid_of(points: Sequence[LngLat]) -> Centroid | None:
    if not points:
        return None
    count = len(points)
    lng_sum = sum(lng for lng, _ in points)
    lat_sum = sum(lat for _, lat in points)
    return Centroid(lat=lat_sum / count, lng=lng_sum / count)


def parse_centroid(value: Any) -> Centroid | None:
    """Compute the vertex-average centroid of a stored geofence.

    Malformed or empty input yields None rather than raising.
    """
    return centroid_of(extract_points(classify_geometry(value)))


def polygon_outlines(value: Any) -> list[list[tuple[float, float]]]:
    """Return non-empty outer rings as (lat, lng) pairs for map overlays."""
    outlines = []
    for ring in extract_rings(classify_geometry(value)):
        if ring:
            outlines.append([(lat, lng) for lng, lat in ring])
    return outlines


def _is_hex(text: str) -> bool:
    return len(text) % 2 == 0 and all(char in "0123456789abcdefABCDEF" for char in text)


def _point_from_text(text: str) -> Centroid | None:
    if ";" in text:
        # EWKT: drop the SRID=...; prefix
        text = text.split(";", 1)[1].strip()
    if not text.upper().startswith(POINT_KEYWORD):
        return None
    open_index = text.find("(")
    close_index = text.rfind(")")
    if open_index == -1 or close_index <= open_index:
        return None
    pairs = parse_coordinate_pairs(text[open_index + 1 : close_index])
    if len(pairs) != 1:
        return None
    lng, lat = pairs[0]
    return Centroid(lat=lat, lng=lng)


def parse_point(value: Any) -> Centroid | None:
    """Read a stored point: WKT/EWKT ``POINT(lng lat)``, hex EWKB or a GeoJSON Point.

    Anything else yields None.
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.startswith("{"):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                return None
        elif _is_hex(text):
            point = point_from_wkb_hex(text)
            return Centroid(lat=point[1], lng=point[0]) if point else None
        else:
            return _point_from_text(text)

    if isinstance(value, Mapping) and value.get("type") == "Point":
        position = _as_sequence(value.get("coordinates"))
        if len(position) >= 2 and _is_finite_number(position[0]) and _is_finite_number(position[1]):
            return Centroid(lat=float(position[1]), lng=float(position[0]))
    return None
