"""HTTP client for the Google Routes API waypoint optimization."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from ...config import settings
from ...models.domain import Centroid
from .models import RouteWaypoint

# Response is restricted to the optimized order.
OPTIMIZED_ORDER_FIELD_MASK = "routes.optimizedIntermediateWaypointIndex"

logger = logging.getLogger(__name__)


class RouteOptimizationError(RuntimeError):
    """The routing service failed or answered with something unusable."""


def _location(point: Centroid) -> dict:
    return RouteWaypoint(location=point).to_request()


def build_request_body(
    origin: Centroid,
    intermediates: Sequence[RouteWaypoint],
    destination: Centroid,
) -> dict:
    return {
        "origin": _location(origin),
        "destination": _location(destination),
        "intermediates": [waypoint.to_request() for waypoint in intermediates],
        "travelMode": "DRIVE",
        "routingPreference": "TRAFFIC_AWARE",
        "optimizeWaypointOrder": True,
    }


def parse_optimized_order(data: Any) -> list[int]:
    """Pull ``routes[0].optimizedIntermediateWaypointIndex`` out of a response body."""
    routes = data.get("routes") if isinstance(data, dict) else None
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise RouteOptimizationError("Routes API response contains no routes.")
    order = routes[0].get("optimizedIntermediateWaypointIndex")
    if not isinstance(order, list) or not all(
        isinstance(index, int) and not isinstance(index, bool) for index in order
    ):
        raise RouteOptimizationError("Routes API response is missing the optimized waypoint order.")
    return order


class GoogleRoutesClient:
    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_routes_api_key
        if not self.api_key:
            raise ValueError("Google Routes API key is not configured.")
        self.url = url or settings.google_routes_url
        self.timeout = timeout if timeout is not None else settings.google_routes_timeout_seconds
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self.transport,
        )

    def optimize_waypoint_order(
        self,
        origin: Centroid,
        intermediates: Sequence[RouteWaypoint],
        destination: Centroid,
    ) -> list[int]:
        """Ask the Routes API for the best visiting order of ``intermediates``.

        Returns zero-based indices into ``intermediates``. Failures are not
        retried; they surface as ``RouteOptimizationError``.
        """
        body = build_request_body(origin, intermediates, destination)
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": OPTIMIZED_ORDER_FIELD_MASK,
        }

        client = self._get_client()
        try:
            response = client.post(self.url, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Routes API returned HTTP {e.response.status_code}: {e.response.text[:500]}"
            )
            raise RouteOptimizationError(
                f"Routes API request failed with status {e.response.status_code}."
            ) from e
        except httpx.HTTPError as e:
            raise RouteOptimizationError(f"Failed to reach the Routes API: {e}") from e
        except ValueError as e:
            raise RouteOptimizationError("Routes API returned a response that is not JSON.") from e
        finally:
            client.close()

        return parse_optimized_order(data)


def check_health() -> bool:
    """Report whether the Routes API is configured.

    Only the configuration is checked; no request is sent.
    """
    return bool(settings.google_routes_api_key and settings.google_routes_url)
