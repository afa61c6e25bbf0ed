"""Validation and canonicalisation of geofence text entered by staff."""

from __future__ import annotations

from .wkt import COLLECTION_KEYWORD, POLYGON_KEYWORD, find_polygon_spans

MIN_GEOFENCE_LENGTH = 10


class InvalidGeofenceError(ValueError):
    """Raised when geofence text is rejected before it is normalised or stored."""


def is_valid_geofence_text(raw: str | None) -> bool:
    if raw is None:
        return False
    normalized = raw.strip().upper()
    is_polygon = normalized.startswith(POLYGON_KEYWORD) and "((" in normalized and "))" in normalized
    is_collection = normalized.startswith(COLLECTION_KEYWORD) and POLYGON_KEYWORD in normalized
    return is_polygon or is_collection


def validate_geofence_text(raw: str | None) -> str:
    """Check the entry-form rules and return the trimmed text.

    Raises:
        InvalidGeofenceError: if the text is too short or not POLYGON/GEOMETRYCOLLECTION.
    """
    if raw is None or len(raw) < MIN_GEOFENCE_LENGTH:
        raise InvalidGeofenceError("The geofence field cannot be empty.")
    if not is_valid_geofence_text(raw):
        raise InvalidGeofenceError("Invalid geofence format. It must be a POLYGON or GEOMETRYCOLLECTION.")
    return raw.strip()


def normalize_geofence(raw: str | None) -> str | None:
    """Rewrite geofence text as a single POLYGON or a GEOMETRYCOLLECTION of polygons.

    * blank input means "no geofence" and returns None;
    * text without any polygon is returned trimmed so the store reports the
      user's literal input when it rejects it;
    * one polygon is returned bare, even if it was wrapped in a collection;
    * several polygons are joined with commas inside ``GEOMETRYCOLLECTION(...)``.

    The result is stable: normalising it again returns it unchanged.
    """
    if raw is None or not raw.strip():
        return None

    text = raw.strip()
    polygons = find_polygon_spans(text)
    if not polygons:
        return text
    if len(polygons) == 1:
        return polygons[0]
    return f"{COLLECTION_KEYWORD}({','.join(polygons)})"
