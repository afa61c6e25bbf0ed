"""Supabase persistence for customers, dispatch lines and their geofences."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..db.supabase import require_supabase_client
from ..models.domain import Centroid, Customer, DeliveryStop, DriverLocation, ShipmentInvoice
from ..services.geometry import parse_point

CUSTOMER_TABLE = "customer"
INVOICE_TABLE = "facturacion"
SHIPMENT_INVOICE_TABLE = "facturacion_x_despacho"
UPDATE_TOTALS_FUNCTION = "update_shipment_totals"
DISPATCH_TABLE = "despacho"
DRIVER_LOCATION_TABLE = "locations_motoristas"

CUSTOMER_COLUMNS = "code_customer, customer_name, geocerca, ubicacion"


def _row_to_customer(row: dict[str, Any]) -> Customer:
    return Customer(
        code_customer=str(row["code_customer"]),
        customer_name=row.get("customer_name") or str(row["code_customer"]),
        geocerca=row.get("geocerca"),
        ubicacion=row.get("ubicacion"),
    )


def location_to_ewkt(latitude: float, longitude: float) -> str:
    """Point value for the ``ubicacion`` column; WKT keeps longitude first."""
    return f"SRID=4326;POINT({longitude} {latitude})"


def get_customer(code_customer: str) -> Customer | None:
    supabase = require_supabase_client()
    response = (
        supabase.table(CUSTOMER_TABLE)
        .select(CUSTOMER_COLUMNS)
        .eq("code_customer", code_customer)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return _row_to_customer(rows[0]) if rows else None


def get_customer_geofence(code_customer: str) -> Any:
    """Stored geofence of a customer (None when unset).

    Raises:
        LookupError: if the customer does not exist.
    """
    customer = get_customer(code_customer)
    if customer is None:
        raise LookupError(f"Customer '{code_customer}' not found.")
    return customer.geocerca


def list_customers_with_geofence() -> list[Customer]:
    supabase = require_supabase_client()
    response = (
        supabase.table(CUSTOMER_TABLE)
        .select(CUSTOMER_COLUMNS)
        .not_.is_("geocerca", "null")
        .order("customer_name")
        .execute()
    )
    return [_row_to_customer(row) for row in (response.data or [])]


def update_customer_geofence(code_customer: str, geocerca: str | None) -> None:
    supabase = require_supabase_client()
    supabase.table(CUSTOMER_TABLE).update({"geocerca": geocerca}).eq("code_customer", code_customer).execute()
    logging.info(f"Updated geofence for customer {code_customer} ({'cleared' if geocerca is None else 'set'})")


def update_customer_location(code_customer: str, latitude: float, longitude: float) -> None:
    """Record the last known location of a customer; concurrent writes are last-write-wins."""
    supabase = require_supabase_client()
    (
        supabase.table(CUSTOMER_TABLE)
        .update({"ubicacion": location_to_ewkt(latitude, longitude)})
        .eq("code_customer", code_customer)
        .execute()
    )


def get_dispatch_stops(dispatch_id: int) -> list[DeliveryStop]:
    """Assemble the delivery stops of a dispatch from its lines, invoices and customers.

    Lines whose invoice or customer cannot be found are skipped with a warning.
    """
    supabase = require_supabase_client()
    lines = (
        supabase.table(SHIPMENT_INVOICE_TABLE)
        .select("id_fac_desp, id_factura")
        .eq("id_despacho", dispatch_id)
        .order("id_fac_desp")
        .execute()
    ).data or []
    if not lines:
        return []

    invoice_ids = sorted({line["id_factura"] for line in lines}, key=str)
    invoices = (
        supabase.table(INVOICE_TABLE)
        .select("id_factura, invoice_number, code_customer")
        .in_("id_factura", invoice_ids)
        .execute()
    ).data or []
    invoice_map = {str(invoice["id_factura"]): invoice for invoice in invoices}

    customer_codes = sorted({str(invoice["code_customer"]) for invoice in invoices if invoice.get("code_customer")})
    customers = []
    if customer_codes:
        customers = (
            supabase.table(CUSTOMER_TABLE)
            .select(CUSTOMER_COLUMNS)
            .in_("code_customer", customer_codes)
            .execute()
        ).data or []
    customer_map = {str(row["code_customer"]): _row_to_customer(row) for row in customers}

    stops: list[DeliveryStop] = []
    for line in lines:
        invoice = invoice_map.get(str(line["id_factura"]))
        if invoice is None:
            logging.warning(f"Dispatch {dispatch_id}: invoice {line['id_factura']} not found, skipping line")
            continue
        customer = customer_map.get(str(invoice.get("code_customer")))
        if customer is None:
            logging.warning(
                f"Dispatch {dispatch_id}: customer {invoice.get('code_customer')} not found, skipping line"
            )
            continue
        invoice_number = invoice.get("invoice_number")
        stops.append(
            DeliveryStop(
                id=int(line["id_fac_desp"]),
                id_factura=str(line["id_factura"]),
                invoice_number=str(invoice_number) if invoice_number is not None else None,
                code_customer=customer.code_customer,
                customer_name=customer.customer_name,
                geocerca=customer.geocerca,
            )
        )
    return stops


def get_shipment_invoice(id_fac_desp: int) -> ShipmentInvoice | None:
    supabase = require_supabase_client()
    rows = (
        supabase.table(SHIPMENT_INVOICE_TABLE)
        .select("id_fac_desp, id_despacho, id_factura, forma_pago, monto, state")
        .eq("id_fac_desp", id_fac_desp)
        .limit(1)
        .execute()
    ).data or []
    if not rows:
        return None
    line = rows[0]

    invoices = (
        supabase.table(INVOICE_TABLE)
        .select("id_factura, code_customer, grand_total")
        .eq("id_factura", line["id_factura"])
        .limit(1)
        .execute()
    ).data or []
    if not invoices:
        logging.warning(f"Shipment invoice {id_fac_desp} references missing invoice {line['id_factura']}")
        return None
    invoice = invoices[0]

    return ShipmentInvoice(
        id_fac_desp=int(line["id_fac_desp"]),
        id_despacho=int(line["id_despacho"]),
        id_factura=str(line["id_factura"]),
        code_customer=str(invoice["code_customer"]),
        grand_total=float(invoice.get("grand_total") or 0.0),
        forma_pago=line.get("forma_pago"),
        monto=float(line.get("monto") or 0.0),
        state=bool(line.get("state")),
    )


def update_shipment_invoice_payment(
    shipment_invoice: ShipmentInvoice,
    forma_pago: str,
    monto: float,
    state: bool,
) -> None:
    """Store the payment of a dispatch line and refresh the dispatch totals."""
    supabase = require_supabase_client()
    (
        supabase.table(SHIPMENT_INVOICE_TABLE)
        .update({"forma_pago": forma_pago, "monto": monto, "state": state})
        .eq("id_fac_desp", shipment_invoice.id_fac_desp)
        .execute()
    )
    try:
        supabase.rpc(UPDATE_TOTALS_FUNCTION, {"p_id_despacho": shipment_invoice.id_despacho}).execute()
    except Exception as e:
        # Payment is already stored; totals are recomputed on the next update.
        logging.warning(f"Failed to refresh totals for dispatch {shipment_invoice.id_despacho}: {e}")


def upsert_driver_location(id_motorista: str, latitude: float, longitude: float) -> DriverLocation:
    """Store the current position of a driver, one row per driver."""
    supabase = require_supabase_client()
    last_update = datetime.now(timezone.utc).isoformat()
    (
        supabase.table(DRIVER_LOCATION_TABLE)
        .upsert(
            {
                "id_motorista": id_motorista,
                "location": f"POINT({longitude} {latitude})",
                "last_update": last_update,
            },
            on_conflict="id_motorista",
        )
        .execute()
    )
    return DriverLocation(
        id_motorista=str(id_motorista),
        location=Centroid(lat=latitude, lng=longitude),
        last_update=last_update,
    )


def get_driver_location(id_motorista: str) -> DriverLocation | None:
    supabase = require_supabase_client()
    rows = (
        supabase.table(DRIVER_LOCATION_TABLE)
        .select("id_motorista, location, last_update")
        .eq("id_motorista", id_motorista)
        .limit(1)
        .execute()
    ).data or []
    if not rows:
        return None
    row = rows[0]
    location = parse_point(row.get("location"))
    if location is None:
        logging.warning(f"Driver {id_motorista} has an unreadable location: {row.get('location')!r}")
        return None
    return DriverLocation(
        id_motorista=str(row["id_motorista"]),
        location=location,
        last_update=row.get("last_update"),
    )


def get_dispatch_driver_location(dispatch_id: int) -> DriverLocation | None:
    """Last known position of the driver assigned to a dispatch, if any."""
    supabase = require_supabase_client()
    rows = (
        supabase.table(DISPATCH_TABLE)
        .select("id_despacho, id_motorista")
        .eq("id_despacho", dispatch_id)
        .limit(1)
        .execute()
    ).data or []
    if not rows or rows[0].get("id_motorista") is None:
        return None
    return get_driver_location(rows[0]["id_motorista"])
