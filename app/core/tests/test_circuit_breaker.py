"""
Tests for the cache-backed CircuitBreaker.

Covers:
- Threshold counting while closed
- Open -> half-open transition after the recovery timeout
- Trial call outcome deciding between closed and open
- Only configured exception types counting as failures
- Failing open when the cache is broken
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from django.core.cache import cache

from core.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from core.exceptions import ExternalServiceError


class UpstreamDown(Exception):
    pass


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def circuit():
    return CircuitBreaker(
        name="listings-test",
        failure_threshold=3,
        recovery_timeout=5,
        failure_exceptions=(UpstreamDown,),
    )


def _trip(circuit: CircuitBreaker) -> float:
    for _ in range(circuit.config.failure_threshold):
        circuit.record_failure()
    return cache.get(circuit._opened_at_key)


class TestClosedCircuit:
    """
    Verifies:
    - A new circuit lets calls through
    - Failures below the threshold keep it closed
    - A success resets the consecutive failure count
    """

    def test_new_circuit_is_available(self, circuit):
        assert circuit.state == CircuitState.CLOSED
        assert circuit.is_available() is True

    def test_failures_below_threshold_keep_circuit_closed(self, circuit):
        circuit.record_failure()
        circuit.record_failure()

        assert circuit.state == CircuitState.CLOSED
        assert circuit.is_available() is True

    def test_success_resets_consecutive_failures(self, circuit):
        circuit.record_failure()
        circuit.record_failure()
        circuit.record_success()
        circuit.record_failure()

        assert circuit.state == CircuitState.CLOSED

    def test_reaching_threshold_opens_circuit(self, circuit):
        _trip(circuit)

        assert circuit.state == CircuitState.OPEN
        assert circuit.is_available() is False


class TestRecovery:
    """
    Verifies:
    - After recovery_timeout exactly one trial call is admitted
    - A successful trial call closes the circuit
    - A failed trial call reopens it
    """

    def test_half_open_admits_single_trial_call(self, circuit):
        opened_at = _trip(circuit)

        with patch("core.circuit_breaker.time.time", return_value=opened_at + 6):
            assert circuit.is_available() is True
            assert circuit.state == CircuitState.HALF_OPEN
            assert circuit.is_available() is False

    def test_successful_trial_call_closes_circuit(self, circuit):
        opened_at = _trip(circuit)

        with patch("core.circuit_breaker.time.time", return_value=opened_at + 6):
            circuit.is_available()
            circuit.record_success()

        assert circuit.state == CircuitState.CLOSED
        assert circuit.is_available() is True

    def test_failed_trial_call_reopens_circuit(self, circuit):
        opened_at = _trip(circuit)

        with patch("core.circuit_breaker.time.time", return_value=opened_at + 6):
            circuit.is_available()
            circuit.record_failure()

        assert circuit.state == CircuitState.OPEN

    def test_open_circuit_before_timeout_rejects(self, circuit):
        opened_at = _trip(circuit)

        with patch("core.circuit_breaker.time.time", return_value=opened_at + 1):
            assert circuit.is_available() is False


class TestCallContextManager:
    """
    Verifies:
    - Configured exceptions are recorded and re-raised
    - Other exceptions propagate without counting
    - An open circuit raises CircuitOpenError, an ExternalServiceError
    """

    def test_configured_exception_counts_as_failure(self, circuit):
        for _ in range(3):
            with pytest.raises(UpstreamDown):
                with circuit.call():
                    raise UpstreamDown()

        assert circuit.state == CircuitState.OPEN

    def test_unlisted_exception_does_not_trip_circuit(self, circuit):
        for _ in range(5):
            with pytest.raises(KeyError):
                with circuit.call():
                    raise KeyError("missing")

        assert circuit.state == CircuitState.CLOSED

    def test_open_circuit_raises_without_running_block(self, circuit):
        _trip(circuit)
        ran = []

        with pytest.raises(CircuitOpenError) as exc_info:
            with circuit.call():
                ran.append(True)

        assert ran == []
        assert isinstance(exc_info.value, ExternalServiceError)
        assert exc_info.value.error_code == "CIRCUIT_OPEN"

    def test_reset_closes_circuit(self, circuit):
        _trip(circuit)

        circuit.reset()

        assert circuit.state == CircuitState.CLOSED
        assert circuit.is_available() is True


class TestCacheFailure:
    """
    Verifies the breaker fails open and never raises when the cache is down.

    Why it matters: a Redis outage must not also take the listings lookup
    down with it.
    """

    def test_is_available_fails_open(self, circuit):
        with patch.object(cache, "get", side_effect=Exception("cache down")):
            assert circuit.is_available() is True

    def test_record_calls_swallow_cache_errors(self, circuit):
        with patch.object(cache, "get", side_effect=Exception("cache down")):
            circuit.record_success()
            circuit.record_failure()
