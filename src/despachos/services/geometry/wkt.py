"""Scanner for the WKT polygon subset stored in customer geofences.

Only ``POLYGON`` and ``GEOMETRYCOLLECTION`` of polygons are recognised. Polygon
spans are located with a linear parenthesis scanner instead of a backtracking
regular expression; coordinate lists are ``lng lat`` pairs separated by commas.
"""

from __future__ import annotations

import math

POLYGON_KEYWORD = "POLYGON"
COLLECTION_KEYWORD = "GEOMETRYCOLLECTION"
POINT_KEYWORD = "POINT"

# outer parenthesis, ring parenthesis and one tolerated level inside a ring
MAX_NESTING_DEPTH = 3

# optional dimension marker between the keyword and its coordinates, longest first
DIMENSION_TOKENS = ("ZM", "Z", "M")

LngLat = tuple[float, float]


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _match_polygon_at(text: str, start: int) -> int | None:
    """Return the end index of the polygon starting at ``start`` or None."""
    index = _skip_whitespace(text, start + len(POLYGON_KEYWORD))
    for token in DIMENSION_TOKENS:
        if text.startswith(token, index):
            index = _skip_whitespace(text, index + len(token))
            break
    if index >= len(text) or text[index] != "(":
        return None
    index = _skip_whitespace(text, index + 1)
    if index >= len(text) or text[index] != "(":
        return None

    depth = 2
    index += 1
    while index < len(text):
        char = text[index]
        if char == "(":
            depth += 1
            if depth > MAX_NESTING_DEPTH:
                return None
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return None


def find_polygon_spans(text: str) -> list[str]:
    """Return every non-overlapping ``POLYGON((...))`` substring, verbatim.

    Matching is case-insensitive. ``MULTIPOLYGON`` is not a polygon span.
    """
    upper = text.upper()
    spans: list[str] = []
    position = 0
    while True:
        start = upper.find(POLYGON_KEYWORD, position)
        if start == -1:
            break
        if start > 0 and upper[start - 1].isalpha():
            position = start + 1
            continue
        end = _match_polygon_at(upper, start)
        if end is None:
            position = start + 1
            continue
        spans.append(text[start:end])
        position = end
    return spans


def parse_coordinate_pairs(text: str) -> list[LngLat]:
    """Parse ``"lng lat, lng lat, ..."`` dropping malformed or non-finite pairs.

    Extra ordinates (Z/M) after the first two are ignored.
    """
    points: list[LngLat] = []
    for piece in text.split(","):
        parts = piece.split()
        if len(parts) < 2:
            continue
        try:
            lng = float(parts[0])
            lat = float(parts[1])
        except ValueError:
            continue
        if math.isfinite(lng) and math.isfinite(lat):
            points.append((lng, lat))
    return points


def _top_level_groups(text: str) -> list[str]:
    """Return the contents of each top-level parenthesised group in ``text``."""
    groups: list[str] = []
    depth = 0
    group_start = 0
    for index, char in enumerate(text):
        if char == "(":
            if depth == 0:
                group_start = index + 1
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
            if depth == 0:
                groups.append(text[group_start:index])
    return groups


def parse_polygon_rings(span: str) -> list[list[LngLat]]:
    """Split a polygon span into its rings, outer ring first."""
    open_index = span.find("(")
    close_index = span.rfind(")")
    if open_index == -1 or close_index <= open_index:
        return []
    body = span[open_index + 1 : close_index]
    return [parse_coordinate_pairs(ring) for ring in _top_level_groups(body)]


def outer_ring(span: str) -> list[LngLat]:
    rings = parse_polygon_rings(span)
    return rings[0] if rings else []
