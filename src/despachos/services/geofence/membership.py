"""Point-in-geofence checks for a customer's stored service area."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from ...config import settings
from ...db.supabase import get_supabase_client
from ..geometry.parser import classify_geometry, extract_rings
from ..geospatial import point_in_rings

logger = logging.getLogger(__name__)


class MembershipCheckError(RuntimeError):
    """The membership check could not produce an answer."""


class MembershipChecker(Protocol):
    def check(self, latitude: float, longitude: float, customer_code: str) -> bool: ...


class SupabaseMembershipChecker:
    """Delegates the test to a Supabase RPC returning a boolean."""

    def __init__(self, client: Any = None, function_name: str | None = None) -> None:
        self._client = client
        self.function_name = function_name or settings.membership_function

    def check(self, latitude: float, longitude: float, customer_code: str) -> bool:
        client = self._client or get_supabase_client()
        if client is None:
            raise MembershipCheckError("Supabase is not configured; cannot verify location.")

        params = {
            "user_latitude": latitude,
            "user_longitude": longitude,
            "p_code_customer": customer_code,
        }
        try:
            response = client.rpc(self.function_name, params).execute()
        except Exception as e:
            logger.error(f"Membership RPC '{self.function_name}' failed for customer {customer_code}: {e}")
            raise MembershipCheckError(str(e)) from e

        result = response.data
        if not isinstance(result, bool):
            raise MembershipCheckError(
                f"Membership RPC '{self.function_name}' returned {type(result).__name__}, expected a boolean."
            )
        return result


class LocalMembershipChecker:
    """Evaluates the stored geofence in-process with shapely."""

    def __init__(self, load_geofence: Callable[[str], Any] | None = None) -> None:
        if load_geofence is None:
            from ...persistence.database import get_customer_geofence

            load_geofence = get_customer_geofence
        self._load_geofence = load_geofence

    def check(self, latitude: float, longitude: float, customer_code: str) -> bool:
        try:
            geofence = self._load_geofence(customer_code)
        except Exception as e:
            raise MembershipCheckError(f"Could not load geofence for customer {customer_code}: {e}") from e

        rings = extract_rings(classify_geometry(geofence))
        if not any(len(ring) >= 3 for ring in rings):
            raise MembershipCheckError(f"Geofence for customer {customer_code} has no usable polygon.")
        return point_in_rings(latitude, longitude, rings)


def build_membership_checker() -> MembershipChecker:
    if settings.membership_backend == "local":
        return LocalMembershipChecker()
    return SupabaseMembershipChecker()
