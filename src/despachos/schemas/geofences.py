"""Geofence request/response schemas."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class CentroidModel(BaseModel):
    lat: float
    lng: float


class GeofenceValidationRequest(BaseModel):
    geocerca: str = Field(..., description="POLYGON or GEOMETRYCOLLECTION WKT text.")


class GeofenceValidationResponse(BaseModel):
    valid: bool
    normalized: Optional[str] = None
    centroid: Optional[CentroidModel] = None


class GeofenceUpdateRequest(BaseModel):
    geocerca: Optional[str] = Field(
        default=None,
        description="New geofence text. null or blank removes the customer's geofence.",
    )


class CustomerGeofenceModel(BaseModel):
    code_customer: str
    customer_name: str
    geocerca: Any = None
    centroid: Optional[CentroidModel] = None
    outlines: List[List[tuple[float, float]]] = Field(
        default_factory=list,
        description="Outer rings as (lat, lng) pairs.",
    )
