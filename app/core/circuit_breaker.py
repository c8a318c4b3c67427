"""
Cache-backed circuit breaker for calls to upstream HTTP services.

State lives in the Django cache so every web worker sees the same
circuit. When the cache itself misbehaves the breaker fails open: the
upstream call is attempted as if the circuit were closed.

States:
    CLOSED    calls pass through, consecutive failures are counted
    OPEN      calls are rejected with CircuitOpenError until recovery_timeout
    HALF_OPEN a limited number of trial calls decide between CLOSED and OPEN

Usage:
    from core.circuit_breaker import CircuitBreaker

    listings_circuit = CircuitBreaker(
        "listings-service",
        failure_threshold=5,
        recovery_timeout=30,
        failure_exceptions=(requests.RequestException,),
    )

    with listings_circuit.call():
        response = requests.get(url, timeout=2)
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from django.core.cache import cache

from core.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: int = 60
    half_open_max_calls: int = 1
    # Must outlive recovery_timeout or an open circuit silently closes
    cache_ttl: int = 3600


class CircuitOpenError(ExternalServiceError):
    """The circuit is open; the upstream was not called."""

    default_error_code: str = "CIRCUIT_OPEN"


class CircuitBreaker:
    """
    Named circuit breaker sharing its state through the Django cache.

    Only exceptions listed in failure_exceptions count as upstream
    failures. Anything else (a 404 translated to None by the caller,
    a programming error) propagates without tripping the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        half_open_max_calls: int = 1,
        failure_exceptions: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.config = CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            half_open_max_calls=half_open_max_calls,
        )
        self.failure_exceptions = failure_exceptions

        prefix = f"circuit:{name}"
        self._state_key = f"{prefix}:state"
        self._failures_key = f"{prefix}:failures"
        self._opened_at_key = f"{prefix}:opened_at"
        self._trial_calls_key = f"{prefix}:half_open_calls"

    @property
    def state(self) -> CircuitState:
        try:
            return CircuitState(cache.get(self._state_key, CircuitState.CLOSED.value))
        except ValueError:
            return CircuitState.CLOSED

    def is_available(self) -> bool:
        """Whether a call may go through right now (claims a trial slot when half-open)."""
        try:
            state = self.state

            if state == CircuitState.OPEN:
                opened_at = cache.get(self._opened_at_key)
                if opened_at is None or time.time() - opened_at < self.config.recovery_timeout:
                    return False
                self._set_state(CircuitState.HALF_OPEN)
                cache.set(self._trial_calls_key, 0, timeout=self.config.cache_ttl)
                logger.info(f"Circuit {self.name} half-open", extra={"circuit": self.name})
                state = CircuitState.HALF_OPEN

            if state == CircuitState.HALF_OPEN:
                return self._incr(self._trial_calls_key) <= self.config.half_open_max_calls

            return True
        except Exception as e:
            logger.warning(
                f"Circuit {self.name} cache error, failing open: {e}",
                extra={"circuit": self.name},
            )
            return True

    def record_success(self) -> None:
        try:
            if self.state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)
                logger.info(f"Circuit {self.name} closed", extra={"circuit": self.name})
            cache.set(self._failures_key, 0, timeout=self.config.cache_ttl)
        except Exception as e:
            logger.warning(f"Circuit {self.name} could not record success: {e}")

    def record_failure(self) -> None:
        try:
            if self.state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning(
                    f"Circuit {self.name} reopened after failed trial call",
                    extra={"circuit": self.name},
                )
                return

            failures = self._incr(self._failures_key)
            if failures >= self.config.failure_threshold:
                self._open()
                logger.warning(
                    f"Circuit {self.name} opened after {failures} failures",
                    extra={"circuit": self.name, "failure_count": failures},
                )
        except Exception as e:
            logger.warning(f"Circuit {self.name} could not record failure: {e}")

    @contextmanager
    def call(self) -> Generator[None, None, None]:
        """
        Guard a block of upstream calls.

        Raises CircuitOpenError without running the block when the circuit
        is open. Exceptions in failure_exceptions are recorded and re-raised.
        """
        if not self.is_available():
            raise CircuitOpenError(
                f"Circuit '{self.name}' is open",
                details={"circuit": self.name},
            )

        try:
            yield
        except self.failure_exceptions:
            self.record_failure()
            raise
        self.record_success()

    def reset(self) -> None:
        """Force the circuit closed (admin and tests)."""
        cache.delete_many([self._state_key, self._failures_key, self._opened_at_key, self._trial_calls_key])

    def _set_state(self, state: CircuitState) -> None:
        cache.set(self._state_key, state.value, timeout=self.config.cache_ttl)

    def _open(self) -> None:
        self._set_state(CircuitState.OPEN)
        cache.set(self._opened_at_key, time.time(), timeout=self.config.cache_ttl)

    def _incr(self, key: str) -> int:
        try:
            return cache.incr(key)
        except ValueError:
            cache.set(key, 1, timeout=self.config.cache_ttl)
            return 1

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self.name!r}, state={self.state.value})"
