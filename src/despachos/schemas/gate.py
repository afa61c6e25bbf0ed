"""Geofence gate request/response schemas."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CurrentUserModel(BaseModel):
    id_user: str
    role: str = Field(..., description="Role description of the acting user (e.g. 'Motorista').")


class DevicePositionModel(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: Optional[float] = Field(default=None, ge=0.0)


class GatedRequest(BaseModel):
    current_user: CurrentUserModel
    position: Optional[DevicePositionModel] = Field(
        default=None,
        description="Position acquired by the device with the options from /gate/options.",
    )
    position_error: Optional[str] = Field(
        default=None,
        description="Geolocation error reported by the device instead of a position.",
    )


class GateCheckRequest(GatedRequest):
    customer_code: str
    record_id: str = Field(..., description="Identifier of the record the action applies to.")


class PaymentUpdateRequest(GatedRequest):
    forma_pago: Literal["Efectivo", "Tarjeta", "Transferencia"]
    monto: float = Field(..., ge=0.0)
    state: bool


class GateResponse(BaseModel):
    status: str
    allowed: bool
    message: Optional[str] = None
    warning: Optional[str] = None


class PositionOptionsModel(BaseModel):
    enable_high_accuracy: bool
    timeout_ms: int
    maximum_age_ms: int
