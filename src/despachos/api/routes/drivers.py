"""Driver location endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...models.domain import CurrentUser, DriverLocation
from ...persistence import database
from ...schemas.drivers import DriverLocationModel, DriverLocationRequest
from ...services.geofence import gate as geofence_gate

router = APIRouter(prefix="/drivers", tags=["drivers"])


def to_model(location: DriverLocation) -> DriverLocationModel:
    return DriverLocationModel(
        id_motorista=location.id_motorista,
        latitude=location.location.lat,
        longitude=location.location.lng,
        last_update=location.last_update,
    )


@router.post("/location", response_model=DriverLocationModel, status_code=status.HTTP_200_OK)
def report_location(payload: DriverLocationRequest) -> DriverLocationModel:
    """Record the current position of the acting driver (one row per driver)."""
    user = CurrentUser(id_user=payload.current_user.id_user, role=payload.current_user.role)
    if not geofence_gate.get_gate().requires_verification(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only drivers report their location.",
        )
    try:
        location = database.upsert_driver_location(
            user.id_user,
            latitude=payload.position.latitude,
            longitude=payload.position.longitude,
        )
    except Exception as exc:
        logging.exception(f"Error saving location for driver {user.id_user}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save the driver location: {str(exc)}",
        ) from exc
    return to_model(location)
