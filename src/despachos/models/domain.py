"""Domain models for customers, dispatch lines and geofence-derived points."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(slots=True, frozen=True)
class Centroid:
    """Unweighted vertex average of a geofence, in degrees."""

    lat: float
    lng: float

    def as_query_value(self) -> str:
        """Format as ``lat,lng`` for map links."""
        return f"{self.lat},{self.lng}"


@dataclass(slots=True)
class Customer:
    """Customer record with its stored service area."""

    code_customer: str
    customer_name: str
    geocerca: Any = None
    ubicacion: Any = None

    @property
    def has_geofence(self) -> bool:
        if self.geocerca is None:
            return False
        if isinstance(self.geocerca, str):
            return bool(self.geocerca.strip())
        return bool(self.geocerca)


@dataclass(slots=True)
class DeliveryStop:
    """A dispatch invoice line paired with the customer that receives it."""

    id: int
    id_factura: str
    invoice_number: Optional[str]
    code_customer: str
    customer_name: str
    geocerca: Any = None


@dataclass(slots=True)
class ShipmentInvoice:
    """Payment record of an invoice inside a dispatch (facturacion_x_despacho)."""

    id_fac_desp: int
    id_despacho: int
    id_factura: str
    code_customer: str
    grand_total: float
    forma_pago: Optional[str] = None
    monto: float = 0.0
    state: bool = False


@dataclass(slots=True, frozen=True)
class CurrentUser:
    """Acting user, threaded explicitly into role-dependent operations."""

    id_user: str
    role: str


@dataclass(slots=True)
class DriverLocation:
    """Last reported position of a driver (locations_motoristas)."""

    id_motorista: str
    location: Centroid
    last_update: Optional[str] = None
