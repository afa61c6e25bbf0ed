"""Geofence geometry helpers."""

from .normalizer import InvalidGeofenceError, normalize_geofence, validate_geofence_text
from .parser import (
    classify_geometry,
    extract_points,
    extract_rings,
    parse_centroid,
    parse_point,
    polygon_outlines,
)

__all__ = [
    "InvalidGeofenceError",
    "classify_geometry",
    "extract_points",
    "extract_rings",
    "normalize_geofence",
    "parse_centroid",
    "parse_point",
    "polygon_outlines",
    "validate_geofence_text",
]
