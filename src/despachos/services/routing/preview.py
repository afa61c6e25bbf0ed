"""Quick greedy ordering used to draw a dispatch on the live map."""

from __future__ import annotations

from typing import Sequence, TypeVar

from ...models.domain import Centroid
from ..geospatial import haversine_km

T = TypeVar("T")


def nearest_neighbor_preview(depot: Centroid, items: Sequence[tuple[T, Centroid]]) -> list[tuple[T, Centroid]]:
    """Visit the closest remaining point from the current position, starting at the depot.

    This is a drawing aid only; itineraries come from ``optimize_route``.
    """
    remaining = list(items)
    ordered: list[tuple[T, Centroid]] = []
    current = depot
    while remaining:
        nearest_index = min(
            range(len(remaining)),
            key=lambda i: haversine_km(current.lat, current.lng, remaining[i][1].lat, remaining[i][1].lng),
        )
        nearest = remaining.pop(nearest_index)
        ordered.append(nearest)
        current = nearest[1]
    return ordered


def preview_path(depot: Centroid, ordered: Sequence[tuple[T, Centroid]]) -> list[tuple[float, float]]:
    """Closed (lat, lng) path depot -> stops -> depot."""
    path = [(depot.lat, depot.lng)]
    path.extend((centroid.lat, centroid.lng) for _, centroid in ordered)
    path.append((depot.lat, depot.lng))
    return path
