"""Driver location request/response schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .gate import CurrentUserModel, DevicePositionModel


class DriverLocationRequest(BaseModel):
    current_user: CurrentUserModel
    position: DevicePositionModel


class DriverLocationModel(BaseModel):
    id_motorista: str
    latitude: float
    longitude: float
    last_update: Optional[str] = None
