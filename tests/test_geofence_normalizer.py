import pytest

from despachos.services.geometry import InvalidGeofenceError, normalize_geofence, validate_geofence_text


P1 = "POLYGON((-90.51 14.63, -90.50 14.63, -90.50 14.62, -90.51 14.62))"
P2 = "POLYGON((-89.21 13.70, -89.20 13.70, -89.20 13.69))"


def test_single_polygon_is_unwrapped_from_collection():
    assert normalize_geofence(f"GEOMETRYCOLLECTION({P1})") == P1


def test_bare_polygons_are_wrapped_in_one_collection():
    assert normalize_geofence(f"{P1} {P2}") == f"GEOMETRYCOLLECTION({P1},{P2})"


@pytest.mark.parametrize(
    "text",
    [
        P1,
        f"GEOMETRYCOLLECTION({P1})",
        f"GEOMETRYCOLLECTION({P1}, {P2})",
        f"{P1}\n{P2}",
        "  polygon ((1 1, 2 2, 3 1))  ",
        "POLYGON((0 0, 10 0, 10 10, 0 10), (2 2, 3 2, 3 3))",
    ],
)
def test_normalize_is_idempotent(text):
    once = normalize_geofence(text)

    assert normalize_geofence(once) == once


def test_blank_means_no_geofence():
    assert normalize_geofence(None) is None
    assert normalize_geofence("   ") is None


def test_text_without_polygon_is_returned_trimmed():
    assert normalize_geofence("  POINT(1 2) ") == "POINT(1 2)"


def test_validate_rejects_short_or_empty_text():
    with pytest.raises(InvalidGeofenceError, match="cannot be empty"):
        validate_geofence_text("POLYGON")
    with pytest.raises(InvalidGeofenceError, match="cannot be empty"):
        validate_geofence_text(None)


def test_validate_rejects_other_geometry_types():
    with pytest.raises(InvalidGeofenceError, match="POLYGON or GEOMETRYCOLLECTION"):
        validate_geofence_text("LINESTRING(1 2, 3 4)")
    with pytest.raises(InvalidGeofenceError):
        validate_geofence_text("POLYGON(1 2, 3 4, 5 6)")


def test_validate_accepts_and_trims():
    assert validate_geofence_text(f"  {P1}  ") == P1
    assert validate_geofence_text(f"geometrycollection({P1})") == f"geometrycollection({P1})"


def test_length_rule_counts_surrounding_whitespace():
    # 13 characters as typed, 7 once trimmed: long enough, but not a polygon
    with pytest.raises(InvalidGeofenceError, match="POLYGON or GEOMETRYCOLLECTION"):
        validate_geofence_text("   POLYGON   ")


def test_collection_with_z_polygons_is_normalized():
    first = "POLYGON Z ((1 1 0, 2 1 0, 2 2 0))"
    second = "POLYGON Z ((5 5 0, 6 5 0, 6 6 0))"

    assert normalize_geofence(f"GEOMETRYCOLLECTION Z ({first})") == first
    assert normalize_geofence(f"{first} {second}") == f"GEOMETRYCOLLECTION({first},{second})"
