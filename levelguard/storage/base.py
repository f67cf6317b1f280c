"""State store interface, in-memory backend and circuit-breaker wrapper.

Every backend satisfies :class:`StateStore`:

- ``load(service_id)`` returns the stored state, or the default initial
  state when no record exists.  Missing fields fall back to defaults.
- ``save(state)`` overwrites the whole record.  Saving the same state twice
  leaves the store unchanged.

Both methods raise :class:`~levelguard.exceptions.StoreUnavailableError`
when the underlying store cannot be reached.  A missing record is never an
error.

There is no locking: two concurrent invocations for the same service read
the same record and the later ``save`` wins.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from levelguard.exceptions import StoreUnavailableError
from levelguard.resilience import CircuitBreaker, CircuitState, worst_state
from levelguard.state import ServiceHealthState

log = logging.getLogger(__name__)

T = TypeVar("T")


class StateStore(Protocol):
    """Minimal load/save interface used by the request handler."""

    def load(self, service_id: str) -> ServiceHealthState:
        """Return the state for *service_id* (defaults if absent)."""
        ...

    def save(self, state: ServiceHealthState) -> None:
        """Overwrite the record for ``state.service_id``."""
        ...


class InMemoryStateStore:
    """Dict-backed store holding persisted-schema records.

    Records are stored in their wire form so the same coercion rules apply
    as for the durable backends.
    """

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        self._records: dict[str, dict[str, Any]] = dict(records or {})
        self._lock = threading.Lock()

    def load(self, service_id: str) -> ServiceHealthState:
        with self._lock:
            record = copy.deepcopy(self._records.get(service_id))
        return ServiceHealthState.from_record(service_id, record)

    def save(self, state: ServiceHealthState) -> None:
        with self._lock:
            self._records[state.service_id] = state.to_record()

    def record(self, service_id: str) -> dict[str, Any] | None:
        """Return a copy of the raw stored record, or ``None``."""
        with self._lock:
            return copy.deepcopy(self._records.get(service_id))


class GuardedStateStore:
    """Wrap a backend with one :class:`CircuitBreaker` per operation.

    ``load`` and ``save`` are tracked separately, so a store that still
    answers reads but keeps rejecting writes opens the ``save`` circuit even
    though every invocation loads successfully first.

    While a circuit is open, that operation fails fast with
    :class:`StoreUnavailableError` without touching the backend.  Backend
    failures are counted and re-raised unchanged; other exceptions pass
    through uncounted.
    """

    OPERATIONS = ("load", "save")

    def __init__(
        self,
        inner: StateStore,
        *,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        name: str = "state-store",
    ) -> None:
        self.inner = inner
        self.breakers: dict[str, CircuitBreaker] = {
            operation: CircuitBreaker(
                name=f"{name}.{operation}",
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
            )
            for operation in self.OPERATIONS
        }

    @property
    def circuit_state(self) -> CircuitState:
        """The most severe state across the per-operation circuits."""
        return worst_state(list(self.breakers.values()))

    @property
    def circuit_states(self) -> dict[str, CircuitState]:
        return {operation: breaker.state for operation, breaker in self.breakers.items()}

    def _call(self, operation: str, service_id: str, fn: Callable[[], T]) -> T:
        breaker = self.breakers[operation]
        if not breaker.allow_request():
            log.debug("store.%s skipped: circuit open (service=%s)", operation, service_id)
            raise StoreUnavailableError(operation, service_id, "circuit open")
        try:
            result = fn()
        except StoreUnavailableError:
            breaker.record_failure()
            raise
        except BaseException:
            breaker.release()
            raise
        breaker.record_success()
        return result

    def load(self, service_id: str) -> ServiceHealthState:
        return self._call("load", service_id, lambda: self.inner.load(service_id))

    def save(self, state: ServiceHealthState) -> None:
        self._call("save", state.service_id, lambda: self.inner.save(state))
