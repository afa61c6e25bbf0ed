import json

import httpx
import pytest

from despachos.models.domain import Centroid, DeliveryStop
from despachos.services.routing import service as routing_service
from despachos.services.routing.google_routes_client import (
    OPTIMIZED_ORDER_FIELD_MASK,
    GoogleRoutesClient,
    RouteOptimizationError,
)
from despachos.services.routing.models import DEPOT_STOP_ID


DEPOT = Centroid(lat=13.6929, lng=-89.2182)


def _stop(stop_id: int, geocerca=None) -> DeliveryStop:
    return DeliveryStop(
        id=stop_id,
        id_factura=f"F{stop_id}",
        invoice_number=f"INV-{stop_id}",
        code_customer=f"C{stop_id}",
        customer_name=f"Customer {stop_id}",
        geocerca=geocerca,
    )


def _square(lng: float, lat: float) -> str:
    return f"POLYGON(({lng} {lat}, {lng + 0.02} {lat}, {lng + 0.02} {lat + 0.02}, {lng} {lat + 0.02}))"


class DummyOptimizer:
    def __init__(self, order=None):
        self.order = order
        self.calls = []

    def optimize_waypoint_order(self, origin, intermediates, destination):
        self.calls.append((origin, list(intermediates), destination))
        if self.order is not None:
            return self.order
        return list(range(len(intermediates)))


def test_stops_without_centroid_are_not_sent():
    stops = [_stop(1, _square(-89.3, 13.7)), _stop(2, None), _stop(3, _square(-89.1, 13.6))]
    optimizer = DummyOptimizer()

    route = routing_service.optimize_route(stops, client=optimizer, depot=DEPOT)

    assert len(optimizer.calls) == 1
    origin, intermediates, destination = optimizer.calls[0]
    assert origin == DEPOT
    assert destination == DEPOT
    assert len(intermediates) == 2
    assert route.skipped_stop_ids == [2]


def test_optimized_order_is_applied_after_depot():
    stops = [_stop(1, _square(-89.3, 13.7)), _stop(2, _square(-89.1, 13.6))]

    route = routing_service.optimize_route(stops, client=DummyOptimizer(order=[1, 0]), depot=DEPOT)

    assert route.entries[0].id == DEPOT_STOP_ID
    assert route.entries[0].centroid == DEPOT
    assert [entry.id for entry in route.stops] == [2, 1]
    assert route.stops[0].stop is stops[1]


def test_order_indices_refer_to_filtered_waypoints():
    stops = [_stop(1, None), _stop(2, _square(-89.3, 13.7)), _stop(3, _square(-89.1, 13.6))]

    route = routing_service.optimize_route(stops, client=DummyOptimizer(order=[1, 0]), depot=DEPOT)

    assert [entry.id for entry in route.stops] == [3, 2]


def test_no_valid_points_never_calls_the_api():
    optimizer = DummyOptimizer()

    with pytest.raises(routing_service.NoValidPointsError):
        routing_service.optimize_route([_stop(1, None), _stop(2, "garbage")], client=optimizer, depot=DEPOT)

    assert optimizer.calls == []


@pytest.mark.parametrize("order", [[0], [0, 0], [0, 2], [1, 0, 2]])
def test_invalid_order_is_rejected(order):
    stops = [_stop(1, _square(-89.3, 13.7)), _stop(2, _square(-89.1, 13.6))]

    with pytest.raises(RouteOptimizationError):
        routing_service.optimize_route(stops, client=DummyOptimizer(order=order), depot=DEPOT)


def test_missing_api_key_is_reported_as_optimization_error(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(routing_service.settings, "google_routes_api_key", None)

    with pytest.raises(RouteOptimizationError, match="not configured"):
        routing_service.optimize_route([_stop(1, _square(-89.3, 13.7))], depot=DEPOT)


def test_google_client_sends_optimization_request():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"routes": [{"optimizedIntermediateWaypointIndex": [1, 0]}]})

    client = GoogleRoutesClient(api_key="test-key", url="https://routes.test/compute", transport=httpx.MockTransport(handler))
    waypoints = [
        routing_service.RouteWaypoint(location=Centroid(lat=13.70, lng=-89.30)),
        routing_service.RouteWaypoint(location=Centroid(lat=13.60, lng=-89.10)),
    ]

    order = client.optimize_waypoint_order(DEPOT, waypoints, DEPOT)

    assert order == [1, 0]
    assert captured["headers"]["X-Goog-Api-Key"] == "test-key"
    assert captured["headers"]["X-Goog-FieldMask"] == OPTIMIZED_ORDER_FIELD_MASK
    body = captured["body"]
    assert body["travelMode"] == "DRIVE"
    assert body["routingPreference"] == "TRAFFIC_AWARE"
    assert body["optimizeWaypointOrder"] is True
    assert body["origin"] == body["destination"]
    assert body["origin"]["location"]["latLng"] == {"latitude": 13.6929, "longitude": -89.2182}
    assert body["intermediates"][1]["location"]["latLng"] == {"latitude": 13.60, "longitude": -89.10}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(403, json={"error": {"message": "denied"}}),
        httpx.Response(200, json={"routes": []}),
        httpx.Response(200, json={"routes": [{}]}),
        httpx.Response(200, content=b"not json"),
    ],
)
def test_google_client_failures_raise_without_fallback(response):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return response

    client = GoogleRoutesClient(api_key="test-key", url="https://routes.test/compute", transport=httpx.MockTransport(handler))

    with pytest.raises(RouteOptimizationError):
        client.optimize_waypoint_order(DEPOT, [routing_service.RouteWaypoint(location=DEPOT)], DEPOT)

    assert len(calls) == 1


def test_google_client_requires_api_key(monkeypatch: pytest.MonkeyPatch):
    from despachos.services.routing import google_routes_client

    monkeypatch.setattr(google_routes_client.settings, "google_routes_api_key", None)

    with pytest.raises(ValueError):
        GoogleRoutesClient()
