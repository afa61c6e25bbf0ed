"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Centroid, DeliveryStop

DEPOT_STOP_ID = -1


@dataclass(slots=True)
class RouteWaypoint:
    location: Centroid

    def to_request(self) -> dict:
        return {"location": {"latLng": {"latitude": self.location.lat, "longitude": self.location.lng}}}


@dataclass(slots=True)
class RouteEntry:
    id: int
    name: str
    centroid: Optional[Centroid]
    stop: Optional[DeliveryStop] = None

    @property
    def is_depot(self) -> bool:
        return self.id == DEPOT_STOP_ID


@dataclass(slots=True)
class OptimizedRoute:
    depot: Centroid
    entries: List[RouteEntry]
    skipped_stop_ids: List[int] = field(default_factory=list)

    @property
    def stops(self) -> List[RouteEntry]:
        """Ordered delivery stops, without the leading depot entry."""
        return [entry for entry in self.entries if not entry.is_depot]
