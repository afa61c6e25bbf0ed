"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from .drivers import DriverLocationModel
from .geofences import CentroidModel


class DeliveryStopModel(BaseModel):
    id: int
    id_factura: str
    invoice_number: Optional[str] = None
    code_customer: str
    customer_name: str
    centroid: Optional[CentroidModel] = None


class DispatchStopsResponse(BaseModel):
    dispatch_id: int
    stops: List[DeliveryStopModel]
    stops_without_location: List[int]


class ItineraryEntryModel(BaseModel):
    position: int
    id: int
    name: str
    code_customer: Optional[str] = None
    invoice_number: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class OptimizedRouteResponse(BaseModel):
    dispatch_id: int
    itinerary: List[ItineraryEntryModel]
    maps_url: str
    skipped_stop_ids: List[int]


class MapPolygonModel(BaseModel):
    id: int
    name: str
    outlines: List[List[tuple[float, float]]]


class DispatchMapResponse(BaseModel):
    dispatch_id: int
    depot: CentroidModel
    polygons: List[MapPolygonModel]
    preview_path: List[tuple[float, float]]
    driver_location: Optional[DriverLocationModel] = None
