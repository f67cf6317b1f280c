"""Circuit breaker for state store operations.

States:
- CLOSED: calls pass through; consecutive failures are counted
- OPEN: calls are rejected without reaching the store
- HALF_OPEN: the recovery timeout has elapsed; exactly one trial call is
  admitted, every other caller is rejected until that call reports back

The trial call closes the circuit on success and reopens it (restarting the
timeout) on failure.  A trial that ends in an error the breaker does not
count must hand its slot back with :meth:`CircuitBreaker.release`.

Defaults: 3 failures → OPEN, 30s cooldown → HALF_OPEN, 1 success → CLOSED
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# Ordering used when several breakers are summarised as one state.
SEVERITY = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1, CircuitState.OPEN: 2}


class CircuitBreaker:
    """Thread-safe circuit breaker for one kind of store call."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._trial_in_flight = False
        self._lock = threading.Lock()

    def _refresh(self) -> CircuitState:
        # Caller holds self._lock.
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info("Circuit %s → HALF_OPEN", self.name)
        return self._state

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._refresh()

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def allow_request(self) -> bool:
        """Admit a call: always when CLOSED, never when OPEN, once when HALF_OPEN."""
        with self._lock:
            state = self._refresh()
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.OPEN or self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def release(self) -> None:
        """Give back a HALF_OPEN trial slot without recording an outcome."""
        with self._lock:
            self._trial_in_flight = False

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Circuit %s → CLOSED (recovered)", self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning("Circuit %s → OPEN (trial call failed)", self.name)
            elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._open()
                logger.warning(
                    "Circuit %s → OPEN (%d failures)", self.name, self._failure_count
                )

    def reset(self) -> None:
        """Manually reset the circuit to CLOSED."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = 0.0
            self._trial_in_flight = False


def worst_state(breakers: list[CircuitBreaker]) -> CircuitState:
    """Most severe state among *breakers* (OPEN, then HALF_OPEN, then CLOSED)."""
    return max((b.state for b in breakers), key=SEVERITY.__getitem__, default=CircuitState.CLOSED)
