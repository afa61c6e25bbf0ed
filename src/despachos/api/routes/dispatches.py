"""Dispatch (despacho) routing and payment endpoints."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Response, status

from ...persistence import database
from ...schemas.gate import GateResponse, PaymentUpdateRequest
from ...schemas.geofences import CentroidModel
from ...schemas.routing import (
    DeliveryStopModel,
    DispatchMapResponse,
    DispatchStopsResponse,
    ItineraryEntryModel,
    MapPolygonModel,
    OptimizedRouteResponse,
)
from ...services.geometry import parse_centroid, polygon_outlines
from ...services.outputs.itinerary import build_itinerary, itinerary_to_csv
from ...services.routing import service as routing_service
from ...services.routing.google_routes_client import RouteOptimizationError
from ...services.routing.links import build_directions_url
from ...services.routing.preview import nearest_neighbor_preview, preview_path
from .drivers import to_model as driver_location_model
from .gate import run_gated, to_response

router = APIRouter(prefix="/dispatches", tags=["dispatches"])


def _load_stops(dispatch_id: int):
    try:
        stops = database.get_dispatch_stops(dispatch_id)
    except Exception as exc:
        logging.exception(f"Error loading stops for dispatch {dispatch_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load dispatch stops: {str(exc)}",
        ) from exc
    if not stops:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dispatch {dispatch_id} has no invoices to deliver.",
        )
    return stops


@router.get("/{dispatch_id}/stops", response_model=DispatchStopsResponse, status_code=status.HTTP_200_OK)
def get_stops(dispatch_id: int) -> DispatchStopsResponse:
    stops = _load_stops(dispatch_id)
    models = []
    without_location = []
    for stop in stops:
        centroid = parse_centroid(stop.geocerca)
        if centroid is None:
            without_location.append(stop.id)
        models.append(
            DeliveryStopModel(
                id=stop.id,
                id_factura=stop.id_factura,
                invoice_number=stop.invoice_number,
                code_customer=stop.code_customer,
                customer_name=stop.customer_name,
                centroid=CentroidModel(lat=centroid.lat, lng=centroid.lng) if centroid else None,
            )
        )
    return DispatchStopsResponse(dispatch_id=dispatch_id, stops=models, stops_without_location=without_location)


@router.post("/{dispatch_id}/route", response_model=OptimizedRouteResponse, status_code=status.HTTP_200_OK)
def optimize_dispatch_route(
    dispatch_id: int,
    format: Literal["json", "csv"] = Query(default="json", description="Return the itinerary as JSON or CSV."),
):
    """Optimize the visiting order of a dispatch.

    The itinerary and the maps link are built from the same optimization result.
    """
    stops = _load_stops(dispatch_id)
    try:
        route = routing_service.optimize_route(stops)
    except routing_service.NoValidPointsError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except RouteOptimizationError as exc:
        logging.error(f"Route optimization failed for dispatch {dispatch_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to optimize route: {str(exc)}",
        ) from exc

    if format == "csv":
        return Response(
            content=itinerary_to_csv(route),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="despacho_{dispatch_id}_ruta.csv"'},
        )

    return OptimizedRouteResponse(
        dispatch_id=dispatch_id,
        itinerary=[ItineraryEntryModel(**row) for row in build_itinerary(route)],
        maps_url=build_directions_url(route),
        skipped_stop_ids=route.skipped_stop_ids,
    )


@router.get("/{dispatch_id}/map", response_model=DispatchMapResponse, status_code=status.HTTP_200_OK)
def get_dispatch_map(dispatch_id: int) -> DispatchMapResponse:
    """Geofence outlines and a nearest-neighbour preview path for the live map."""
    stops = _load_stops(dispatch_id)
    depot = routing_service.default_depot()
    resolved, _ = routing_service.resolve_stop_centroids(stops)
    ordered = nearest_neighbor_preview(depot, resolved)
    polygons = [
        MapPolygonModel(id=stop.id, name=stop.customer_name, outlines=polygon_outlines(stop.geocerca))
        for stop, _ in resolved
    ]
    try:
        driver_location = database.get_dispatch_driver_location(dispatch_id)
    except Exception as exc:
        logging.warning(f"Could not load the driver location for dispatch {dispatch_id}: {exc}")
        driver_location = None
    return DispatchMapResponse(
        dispatch_id=dispatch_id,
        depot=CentroidModel(lat=depot.lat, lng=depot.lng),
        polygons=polygons,
        preview_path=preview_path(depot, ordered),
        driver_location=driver_location_model(driver_location) if driver_location else None,
    )


@router.patch(
    "/{dispatch_id}/invoices/{id_fac_desp}/payment",
    response_model=GateResponse,
    status_code=status.HTTP_200_OK,
)
def update_payment(dispatch_id: int, id_fac_desp: int, payload: PaymentUpdateRequest) -> GateResponse:
    """Edit the payment of a dispatch invoice; drivers must be inside the customer's geofence."""
    shipment_invoice = database.get_shipment_invoice(id_fac_desp)
    if shipment_invoice is None or shipment_invoice.id_despacho != dispatch_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invoice line {id_fac_desp} not found in dispatch {dispatch_id}.",
        )
    if payload.monto > shipment_invoice.grand_total:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"The amount cannot exceed the invoice total: ${shipment_invoice.grand_total:.2f}",
        )
    customer = database.get_customer(shipment_invoice.code_customer)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer '{shipment_invoice.code_customer}' not found.",
        )

    def save_payment() -> None:
        database.update_shipment_invoice_payment(
            shipment_invoice,
            forma_pago=payload.forma_pago,
            monto=payload.monto,
            state=payload.state,
        )

    try:
        result = run_gated(payload, customer, f"payment:{id_fac_desp}", save_payment)
    except HTTPException:
        raise
    except Exception as exc:
        logging.exception(f"Error updating payment {id_fac_desp}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update the payment: {str(exc)}",
        ) from exc

    if not result.allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result.message)
    return to_response(result)
