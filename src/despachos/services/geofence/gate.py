"""Geofence-protected actions.

Drivers may only perform certain actions (editing a payment, opening the
camera) while standing inside the customer's geofence. Customers without a
geofence let the action through and get the driver's position recorded as
their last known location. Every other role passes straight through.

The location write is not performed inside ``run``: it is returned as a
``PersistLocation`` descriptor and executed by ``apply_secondary_effect`` so
callers decide when it happens and its failure never undoes the action.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Hashable, Iterator, Optional

from ...config import settings
from ...models.domain import CurrentUser, Customer
from .membership import MembershipChecker, build_membership_checker

logger = logging.getLogger(__name__)

LOCATION_ERROR_MESSAGE = "Could not get your current location"
OUTSIDE_GEOFENCE_MESSAGE = "You must be inside the customer's geofence to perform this action."
VERIFICATION_FAILED_MESSAGE = "Could not verify your location. Please try again."
PERSIST_LOCATION_WARNING = "The action was allowed, but the customer's location could not be saved."


class GeolocationError(RuntimeError):
    """The device position could not be obtained (permission denied, timeout...)."""


class VerificationInProgressError(RuntimeError):
    """A verification for the same record has not settled yet."""


@dataclass(slots=True, frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout_ms: int = 10_000
    maximum_age_ms: int = 0


@dataclass(slots=True, frozen=True)
class DevicePosition:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


PositionProvider = Callable[[PositionOptions], DevicePosition]


class GateStatus(str, Enum):
    ALLOWED = "allowed"
    DENIED_OUTSIDE_GEOFENCE = "denied_outside_geofence"
    VERIFICATION_FAILED = "verification_failed"
    LOCATION_ERROR = "location_error"


@dataclass(slots=True, frozen=True)
class PersistLocation:
    code_customer: str
    latitude: float
    longitude: float


@dataclass(slots=True)
class GateResult:
    status: GateStatus
    message: Optional[str] = None
    action_result: Any = None
    secondary_effect: Optional[PersistLocation] = None
    warning: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.status is GateStatus.ALLOWED


class VerificationRegistry:
    """Thread-safe set of record ids whose verification is pending."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: set[Hashable] = set()

    @contextmanager
    def verifying(self, record_id: Hashable) -> Iterator[None]:
        with self._lock:
            if record_id in self._pending:
                raise VerificationInProgressError(f"Location verification for record {record_id} is already running.")
            self._pending.add(record_id)
        try:
            yield
        finally:
            with self._lock:
                self._pending.discard(record_id)

    def is_verifying(self, record_id: Hashable) -> bool:
        with self._lock:
            return record_id in self._pending

    def snapshot(self) -> list[Hashable]:
        with self._lock:
            return list(self._pending)


def reported_position(position: DevicePosition | None, error: str | None = None) -> PositionProvider:
    """Provider for positions acquired by the client and sent with the request."""

    def provider(options: PositionOptions) -> DevicePosition:
        if error:
            raise GeolocationError(error)
        if position is None:
            raise GeolocationError("The device did not report a position.")
        return position

    return provider


def _persist_customer_location(code_customer: str, latitude: float, longitude: float) -> None:
    from ...persistence.database import update_customer_location

    update_customer_location(code_customer, latitude, longitude)


class GeofenceGate:
    def __init__(
        self,
        membership_checker: MembershipChecker | None = None,
        persist_location: Callable[[str, float, float], None] | None = None,
        registry: VerificationRegistry | None = None,
        driver_role: str | None = None,
        position_options: PositionOptions | None = None,
    ) -> None:
        self._membership_checker = membership_checker
        self.persist_location = persist_location or _persist_customer_location
        self.registry = registry or VerificationRegistry()
        self.driver_role = (driver_role or settings.driver_role).strip().lower()
        self.position_options = position_options or PositionOptions(timeout_ms=settings.geolocation_timeout_ms)

    @property
    def membership_checker(self) -> MembershipChecker:
        if self._membership_checker is None:
            self._membership_checker = build_membership_checker()
        return self._membership_checker

    def requires_verification(self, user: CurrentUser) -> bool:
        return bool(self.driver_role) and (user.role or "").strip().lower() == self.driver_role

    def run(
        self,
        current_user: CurrentUser,
        customer: Customer,
        record_id: Hashable,
        action: Callable[[], Any],
        position_provider: PositionProvider,
    ) -> GateResult:
        """Run ``action`` if ``current_user`` is allowed to act on ``customer`` right now.

        Raises:
            VerificationInProgressError: ``record_id`` is already being verified.
        """
        if not self.requires_verification(current_user):
            return GateResult(status=GateStatus.ALLOWED, action_result=action())

        with self.registry.verifying(record_id):
            result = self._verify(customer, position_provider)

        if result.allowed:
            result.action_result = action()
        return result

    def _verify(self, customer: Customer, position_provider: PositionProvider) -> GateResult:
        try:
            position = position_provider(self.position_options)
        except GeolocationError as e:
            logger.warning(f"Geolocation failed for customer {customer.code_customer}: {e}")
            return GateResult(status=GateStatus.LOCATION_ERROR, message=f"{LOCATION_ERROR_MESSAGE}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected geolocation error for customer {customer.code_customer}")
            return GateResult(status=GateStatus.LOCATION_ERROR, message=f"{LOCATION_ERROR_MESSAGE}: {e}")

        if not customer.has_geofence:
            effect = PersistLocation(
                code_customer=customer.code_customer,
                latitude=position.latitude,
                longitude=position.longitude,
            )
            return GateResult(status=GateStatus.ALLOWED, secondary_effect=effect)

        try:
            inside = self.membership_checker.check(position.latitude, position.longitude, customer.code_customer)
        except Exception as e:
            logger.error(f"Membership check failed for customer {customer.code_customer}: {e}")
            return GateResult(status=GateStatus.VERIFICATION_FAILED, message=VERIFICATION_FAILED_MESSAGE)

        if inside:
            return GateResult(status=GateStatus.ALLOWED)
        logger.info(f"Position outside geofence of customer {customer.code_customer}; action denied")
        return GateResult(status=GateStatus.DENIED_OUTSIDE_GEOFENCE, message=OUTSIDE_GEOFENCE_MESSAGE)

    def apply_secondary_effect(self, result: GateResult) -> Optional[str]:
        """Persist the location captured for a customer without geofence.

        Returns the warning message when the write fails; the gate outcome is
        left as it was.
        """
        effect = result.secondary_effect
        if effect is None:
            return None
        try:
            self.persist_location(effect.code_customer, effect.latitude, effect.longitude)
        except Exception as e:
            logger.warning(f"Failed to save last known location for customer {effect.code_customer}: {e}")
            result.warning = PERSIST_LOCATION_WARNING
            return result.warning
        return None


@lru_cache()
def get_gate() -> GeofenceGate:
    """Process-wide gate so the verifying registry is shared between requests."""
    return GeofenceGate()
