"""Customer geofence endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException, status

from ...models.domain import Customer
from ...persistence import database
from ...schemas.geofences import (
    CentroidModel,
    CustomerGeofenceModel,
    GeofenceUpdateRequest,
    GeofenceValidationRequest,
    GeofenceValidationResponse,
)
from ...services.geometry import (
    InvalidGeofenceError,
    normalize_geofence,
    parse_centroid,
    polygon_outlines,
    validate_geofence_text,
)

router = APIRouter(tags=["geofences"])


def _centroid_model(value) -> CentroidModel | None:
    centroid = parse_centroid(value)
    return CentroidModel(lat=centroid.lat, lng=centroid.lng) if centroid else None


def _customer_geofence_model(customer: Customer, include_outlines: bool = False) -> CustomerGeofenceModel:
    return CustomerGeofenceModel(
        code_customer=customer.code_customer,
        customer_name=customer.customer_name,
        geocerca=customer.geocerca,
        centroid=_centroid_model(customer.geocerca),
        outlines=polygon_outlines(customer.geocerca) if include_outlines else [],
    )


@router.post("/geofences/validate", response_model=GeofenceValidationResponse, status_code=status.HTTP_200_OK)
def validate_geofence(payload: GeofenceValidationRequest) -> GeofenceValidationResponse:
    """Check geofence text and preview what would be stored."""
    try:
        text = validate_geofence_text(payload.geocerca)
    except InvalidGeofenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    normalized = normalize_geofence(text)
    return GeofenceValidationResponse(valid=True, normalized=normalized, centroid=_centroid_model(normalized))


@router.get("/customers/geofences", response_model=List[CustomerGeofenceModel], status_code=status.HTTP_200_OK)
def list_customer_geofences() -> List[CustomerGeofenceModel]:
    try:
        customers = database.list_customers_with_geofence()
    except Exception as exc:
        logging.exception(f"Error listing customer geofences: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list customer geofences: {str(exc)}",
        ) from exc
    return [_customer_geofence_model(customer) for customer in customers]


@router.get("/customers/{code_customer}/geofence", response_model=CustomerGeofenceModel, status_code=status.HTTP_200_OK)
def get_customer_geofence(code_customer: str) -> CustomerGeofenceModel:
    customer = database.get_customer(code_customer)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer '{code_customer}' not found.")
    return _customer_geofence_model(customer, include_outlines=True)


@router.put("/customers/{code_customer}/geofence", response_model=CustomerGeofenceModel, status_code=status.HTTP_200_OK)
def update_customer_geofence(code_customer: str, payload: GeofenceUpdateRequest) -> CustomerGeofenceModel:
    """Validate, normalize and store a customer's geofence (null clears it)."""
    if payload.geocerca is None or not payload.geocerca.strip():
        geocerca = None
    else:
        try:
            geocerca = normalize_geofence(validate_geofence_text(payload.geocerca))
        except InvalidGeofenceError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    customer = database.get_customer(code_customer)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Customer '{code_customer}' not found.")

    try:
        database.update_customer_geofence(code_customer, geocerca)
    except Exception as exc:
        logging.exception(f"Error saving geofence for customer {code_customer}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save the geofence: {str(exc)}",
        ) from exc

    customer.geocerca = geocerca
    return _customer_geofence_model(customer, include_outlines=True)
