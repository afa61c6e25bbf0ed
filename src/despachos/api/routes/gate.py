"""Geofence gate endpoints."""

from __future__ import annotations

from typing import Any, Callable, List

from fastapi import APIRouter, HTTPException, status

from ...models.domain import CurrentUser, Customer
from ...persistence import database
from ...schemas.gate import GateCheckRequest, GatedRequest, GateResponse, PositionOptionsModel
from ...services.geofence import gate as geofence_gate

router = APIRouter(prefix="/gate", tags=["gate"])


def run_gated(
    payload: GatedRequest,
    customer: Customer,
    record_id: str,
    action: Callable[[], Any],
) -> geofence_gate.GateResult:
    """Run ``action`` through the process gate and persist any captured location."""
    gate = geofence_gate.get_gate()
    user = CurrentUser(id_user=payload.current_user.id_user, role=payload.current_user.role)
    position = None
    if payload.position is not None:
        position = geofence_gate.DevicePosition(
            latitude=payload.position.latitude,
            longitude=payload.position.longitude,
            accuracy=payload.position.accuracy,
        )
    provider = geofence_gate.reported_position(position, payload.position_error)

    try:
        result = gate.run(user, customer, record_id, action, provider)
    except geofence_gate.VerificationInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    gate.apply_secondary_effect(result)
    return result


def to_response(result: geofence_gate.GateResult) -> GateResponse:
    return GateResponse(
        status=result.status.value,
        allowed=result.allowed,
        message=result.message,
        warning=result.warning,
    )


@router.get("/options", response_model=PositionOptionsModel, status_code=status.HTTP_200_OK)
def position_options() -> PositionOptionsModel:
    """Options the device must use when acquiring its position."""
    options = geofence_gate.get_gate().position_options
    return PositionOptionsModel(
        enable_high_accuracy=options.enable_high_accuracy,
        timeout_ms=options.timeout_ms,
        maximum_age_ms=options.maximum_age_ms,
    )


@router.get("/verifying", response_model=List[str], status_code=status.HTTP_200_OK)
def verifying_records() -> List[str]:
    """Record ids whose location verification has not settled yet."""
    return [str(record_id) for record_id in geofence_gate.get_gate().registry.snapshot()]


@router.post("/check", response_model=GateResponse, status_code=status.HTTP_200_OK)
def check(payload: GateCheckRequest) -> GateResponse:
    """Gate for actions performed on the device itself, such as opening the camera."""
    customer = database.get_customer(payload.customer_code)
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer '{payload.customer_code}' not found.",
        )
    result = run_gated(payload, customer, payload.record_id, lambda: None)
    return to_response(result)
