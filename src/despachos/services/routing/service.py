"""Route optimization for the delivery stops of a dispatch."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from ...config import settings
from ...models.domain import Centroid, DeliveryStop
from ..geometry.parser import parse_centroid
from .google_routes_client import GoogleRoutesClient, RouteOptimizationError
from .models import DEPOT_STOP_ID, OptimizedRoute, RouteEntry, RouteWaypoint

logger = logging.getLogger(__name__)


class NoValidPointsError(ValueError):
    """None of the requested stops has a geofence with a usable centroid."""


class WaypointOptimizer(Protocol):
    def optimize_waypoint_order(
        self,
        origin: Centroid,
        intermediates: Sequence[RouteWaypoint],
        destination: Centroid,
    ) -> list[int]: ...


def default_depot() -> Centroid:
    return Centroid(lat=settings.depot_latitude, lng=settings.depot_longitude)


def depot_entry(depot: Centroid) -> RouteEntry:
    return RouteEntry(id=DEPOT_STOP_ID, name=settings.depot_name, centroid=depot, stop=None)


def resolve_stop_centroids(
    stops: Sequence[DeliveryStop],
) -> tuple[list[tuple[DeliveryStop, Centroid]], list[int]]:
    """Split stops into those with a centroid and the ids of those without one."""
    resolved: list[tuple[DeliveryStop, Centroid]] = []
    skipped: list[int] = []
    for stop in stops:
        centroid = parse_centroid(stop.geocerca)
        if centroid is None:
            skipped.append(stop.id)
        else:
            resolved.append((stop, centroid))
    return resolved, skipped


def _apply_order(
    resolved: Sequence[tuple[DeliveryStop, Centroid]], order: Sequence[int]
) -> list[tuple[DeliveryStop, Centroid]]:
    if sorted(order) != list(range(len(resolved))):
        raise RouteOptimizationError(
            f"Routes API returned an invalid waypoint order {list(order)} for {len(resolved)} stops."
        )
    return [resolved[index] for index in order]


def optimize_route(
    stops: Sequence[DeliveryStop],
    client: WaypointOptimizer | None = None,
    depot: Centroid | None = None,
) -> OptimizedRoute:
    """Order the stops of a dispatch with the Routes API.

    Stops whose geofence yields no centroid are left out. The depot is origin
    and destination, and the result lists a depot entry (id ``-1``) first,
    followed by the stops in the optimized order.

    Raises:
        NoValidPointsError: no stop has a usable centroid; the API is not called.
        RouteOptimizationError: the API failed or its answer could not be applied.
    """
    depot = depot or default_depot()
    resolved, skipped = resolve_stop_centroids(stops)
    if skipped:
        logger.warning(f"Skipping {len(skipped)} stop(s) without a valid geofence: {skipped}")
    if not resolved:
        raise NoValidPointsError("None of the selected stops has a valid geofence location.")

    if client is None:
        try:
            client = GoogleRoutesClient()
        except ValueError as e:
            logger.error(f"Routes API client initialization failed: {e}")
            raise RouteOptimizationError("Route optimization service is not configured.") from e

    waypoints = [RouteWaypoint(location=centroid) for _, centroid in resolved]
    order = client.optimize_waypoint_order(depot, waypoints, depot)
    ordered = _apply_order(resolved, order)

    logger.info(f"Optimized route with {len(ordered)} stop(s), order={list(order)}")
    entries = [depot_entry(depot)]
    entries.extend(
        RouteEntry(id=stop.id, name=stop.customer_name, centroid=centroid, stop=stop)
        for stop, centroid in ordered
    )
    return OptimizedRoute(depot=depot, entries=entries, skipped_stop_ids=skipped)
