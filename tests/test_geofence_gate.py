import threading

import pytest

from despachos.models.domain import CurrentUser, Customer
from despachos.services.geofence.gate import (
    LOCATION_ERROR_MESSAGE,
    OUTSIDE_GEOFENCE_MESSAGE,
    PERSIST_LOCATION_WARNING,
    VERIFICATION_FAILED_MESSAGE,
    DevicePosition,
    GateStatus,
    GeofenceGate,
    GeolocationError,
    PersistLocation,
    PositionOptions,
    VerificationInProgressError,
    reported_position,
)


DRIVER = CurrentUser(id_user="u1", role="Motorista")
CLERK = CurrentUser(id_user="u2", role="Facturación")
FENCED = Customer(code_customer="C1", customer_name="Tienda Uno", geocerca="POLYGON((0 0, 1 0, 1 1, 0 1))")
UNFENCED = Customer(code_customer="C2", customer_name="Tienda Dos", geocerca=None)
POSITION = DevicePosition(latitude=13.7, longitude=-89.2, accuracy=5.0)


class StubChecker:
    def __init__(self, answer=True, error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def check(self, latitude, longitude, customer_code):
        self.calls.append((latitude, longitude, customer_code))
        if self.error is not None:
            raise self.error
        return self.answer


class RecordingProvider:
    def __init__(self, position=POSITION, error=None):
        self.position = position
        self.error = error
        self.calls = []

    def __call__(self, options):
        self.calls.append(options)
        if self.error is not None:
            raise self.error
        return self.position


class Action:
    def __init__(self, result="done"):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result


def _gate(checker=None, persist=None):
    persisted = []

    def default_persist(code, lat, lng):
        persisted.append((code, lat, lng))

    gate = GeofenceGate(
        membership_checker=checker or StubChecker(),
        persist_location=persist or default_persist,
        driver_role="motorista",
    )
    return gate, persisted


def test_non_driver_runs_action_without_geolocation():
    checker = StubChecker()
    gate, _ = _gate(checker)
    provider = RecordingProvider()
    action = Action()

    result = gate.run(CLERK, FENCED, 10, action, provider)

    assert result.status is GateStatus.ALLOWED
    assert result.action_result == "done"
    assert action.calls == 1
    assert provider.calls == []
    assert checker.calls == []


def test_driver_role_must_match_exactly_ignoring_case():
    gate, _ = _gate()

    assert gate.requires_verification(CurrentUser(id_user="u", role="MOTORISTA"))
    assert gate.requires_verification(CurrentUser(id_user="u", role="  motorista "))
    assert gate.requires_verification(DRIVER)
    assert not gate.requires_verification(CurrentUser(id_user="u", role="Supervisor de motoristas"))
    assert not gate.requires_verification(CurrentUser(id_user="u", role="Motorista Ruta 3"))
    assert not gate.requires_verification(CLERK)
    assert not gate.requires_verification(CurrentUser(id_user="u", role=""))


def test_role_containing_driver_word_is_not_gated():
    checker = StubChecker(answer=False)
    gate, _ = _gate(checker)
    action = Action()
    supervisor = CurrentUser(id_user="u3", role="Supervisor de motoristas")

    result = gate.run(supervisor, FENCED, 1, action, reported_position(None))

    assert result.status is GateStatus.ALLOWED
    assert action.calls == 1
    assert checker.calls == []


def test_driver_outside_geofence_never_runs_action():
    checker = StubChecker(answer=False)
    gate, persisted = _gate(checker)
    action = Action()

    result = gate.run(DRIVER, FENCED, 10, action, RecordingProvider())

    assert result.status is GateStatus.DENIED_OUTSIDE_GEOFENCE
    assert result.message == OUTSIDE_GEOFENCE_MESSAGE
    assert not result.allowed
    assert action.calls == 0
    assert checker.calls == [(13.7, -89.2, "C1")]
    assert persisted == []


def test_driver_inside_geofence_runs_action():
    gate, persisted = _gate(StubChecker(answer=True))
    action = Action()

    result = gate.run(DRIVER, FENCED, 10, action, RecordingProvider())

    assert result.allowed
    assert result.secondary_effect is None
    assert action.calls == 1
    assert persisted == []


def test_customer_without_geofence_runs_action_and_persists_location():
    checker = StubChecker()
    gate, persisted = _gate(checker)
    action = Action()

    result = gate.run(DRIVER, UNFENCED, 10, action, RecordingProvider())

    assert result.allowed
    assert action.calls == 1
    assert checker.calls == []
    assert result.secondary_effect == PersistLocation(code_customer="C2", latitude=13.7, longitude=-89.2)

    assert gate.apply_secondary_effect(result) is None
    assert persisted == [("C2", 13.7, -89.2)]


def test_failed_location_persist_is_only_a_warning():
    def failing_persist(code, lat, lng):
        raise RuntimeError("db down")

    gate, _ = _gate(persist=failing_persist)
    action = Action()

    result = gate.run(DRIVER, UNFENCED, 10, action, RecordingProvider())
    warning = gate.apply_secondary_effect(result)

    assert action.calls == 1
    assert result.allowed
    assert warning == PERSIST_LOCATION_WARNING
    assert result.warning == PERSIST_LOCATION_WARNING


def test_membership_error_is_distinct_from_denial():
    gate, _ = _gate(StubChecker(error=RuntimeError("rpc failed")))
    action = Action()

    result = gate.run(DRIVER, FENCED, 10, action, RecordingProvider())

    assert result.status is GateStatus.VERIFICATION_FAILED
    assert result.message == VERIFICATION_FAILED_MESSAGE
    assert action.calls == 0


def test_geolocation_error_denies_before_membership_check():
    checker = StubChecker()
    gate, persisted = _gate(checker)
    action = Action()

    result = gate.run(DRIVER, UNFENCED, 10, action, RecordingProvider(error=GeolocationError("permission denied")))

    assert result.status is GateStatus.LOCATION_ERROR
    assert result.message == f"{LOCATION_ERROR_MESSAGE}: permission denied"
    assert action.calls == 0
    assert checker.calls == []
    assert result.secondary_effect is None
    assert persisted == []


def test_position_is_requested_with_gate_options():
    gate = GeofenceGate(
        membership_checker=StubChecker(),
        persist_location=lambda *args: None,
        driver_role="motorista",
        position_options=PositionOptions(timeout_ms=5000),
    )
    provider = RecordingProvider()

    gate.run(DRIVER, FENCED, 10, Action(), provider)

    assert provider.calls == [PositionOptions(enable_high_accuracy=True, timeout_ms=5000, maximum_age_ms=0)]


def test_reported_position_provider():
    assert reported_position(POSITION)(PositionOptions()) == POSITION
    with pytest.raises(GeolocationError, match="timeout"):
        reported_position(None, "timeout")(PositionOptions())
    with pytest.raises(GeolocationError):
        reported_position(None)(PositionOptions())


def test_record_is_marked_verifying_only_during_check():
    gate = None
    seen = []

    class ObservingChecker(StubChecker):
        def check(self, latitude, longitude, customer_code):
            seen.append((gate.registry.is_verifying(10), gate.registry.is_verifying(11)))
            return True

    gate, _ = _gate(ObservingChecker())
    action = Action()
    action_seen = []

    def observed_action():
        action_seen.append(gate.registry.is_verifying(10))
        return action()

    gate.run(DRIVER, FENCED, 10, observed_action, RecordingProvider())

    assert seen == [(True, False)]
    assert action_seen == [False]
    assert gate.registry.snapshot() == []


def test_registry_is_cleared_when_verification_raises():
    gate, _ = _gate()

    def exploding_provider(options):
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        gate.run(DRIVER, FENCED, 10, Action(), exploding_provider)

    assert not gate.registry.is_verifying(10)


def test_same_record_cannot_be_verified_twice_concurrently():
    entered = threading.Event()
    release = threading.Event()

    class BlockingChecker(StubChecker):
        def check(self, latitude, longitude, customer_code):
            entered.set()
            release.wait(timeout=5)
            return True

    gate, _ = _gate(BlockingChecker())
    results = []
    worker = threading.Thread(
        target=lambda: results.append(gate.run(DRIVER, FENCED, 10, Action(), RecordingProvider()))
    )
    worker.start()
    try:
        assert entered.wait(timeout=5)

        with pytest.raises(VerificationInProgressError):
            gate.run(DRIVER, FENCED, 10, Action(), RecordingProvider())

        other = gate.run(CLERK, FENCED, 11, Action(), RecordingProvider())
        assert other.allowed
        assert gate.registry.snapshot() == [10]
    finally:
        release.set()
        worker.join(timeout=5)

    assert results[0].allowed
    assert gate.registry.snapshot() == []
