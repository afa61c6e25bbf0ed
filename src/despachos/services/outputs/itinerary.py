"""Serializers for optimized route itineraries."""

from __future__ import annotations

import csv
import io

from ..routing.models import OptimizedRoute


def build_itinerary(route: OptimizedRoute) -> list[dict]:
    """Numbered itinerary rows; the depot is position 0."""
    rows = []
    for position, entry in enumerate(route.entries):
        stop = entry.stop
        rows.append(
            {
                "position": position,
                "id": entry.id,
                "name": entry.name,
                "code_customer": stop.code_customer if stop else None,
                "invoice_number": stop.invoice_number if stop else None,
                "latitude": entry.centroid.lat if entry.centroid else None,
                "longitude": entry.centroid.lng if entry.centroid else None,
            }
        )
    return rows


def itinerary_to_csv(route: OptimizedRoute) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "position",
        "id",
        "name",
        "code_customer",
        "invoice_number",
        "latitude",
        "longitude",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for row in build_itinerary(route):
        writer.writerow(row)
    return buffer.getvalue()
