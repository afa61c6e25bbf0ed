"""External maps deep links for optimized routes."""

from __future__ import annotations

from .models import OptimizedRoute

GOOGLE_MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1"


def build_directions_url(route: OptimizedRoute) -> str:
    """Driving directions from the depot through every stop, in route order.

    The last stop is the destination; the preceding stops become pipe-joined
    waypoints.
    """
    stops = route.stops
    if not stops:
        raise ValueError("Route has no stops to link.")

    origin = route.depot.as_query_value()
    destination = stops[-1].centroid.as_query_value()
    url = f"{GOOGLE_MAPS_DIRECTIONS_URL}&origin={origin}&destination={destination}"
    waypoints = [stop.centroid.as_query_value() for stop in stops[:-1]]
    if waypoints:
        url += f"&waypoints={'|'.join(waypoints)}"
    return url
