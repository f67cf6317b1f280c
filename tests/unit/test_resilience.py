"""Tests for the store circuit breaker and the guarded store wrapper."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from levelguard.exceptions import StoreUnavailableError
from levelguard.handler import DegradationController
from levelguard.resilience import CircuitBreaker, CircuitState, worst_state
from levelguard.state import ServiceHealthState
from levelguard.storage import GuardedStateStore, InMemoryStateStore


class TestCircuitBreaker:
    def test_initial_state_closed(self):
        cb = CircuitBreaker("test")
        assert cb.state == CircuitState.CLOSED

    def test_opens_after_threshold(self):
        cb = CircuitBreaker("test", failure_threshold=3)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert cb.allow_request() is False

    def test_stays_closed_below_threshold(self):
        cb = CircuitBreaker("test", failure_threshold=3)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 2

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker("test", failure_threshold=3)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        assert cb.state == CircuitState.OPEN
        time.sleep(0.1)
        assert cb.state == CircuitState.HALF_OPEN
        assert cb.allow_request() is True

    def test_half_open_success_closes(self):
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.1)
        assert cb.state == CircuitState.HALF_OPEN
        cb.record_success()
        assert cb.state == CircuitState.CLOSED

    def test_half_open_failure_reopens(self):
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.1)
        assert cb.state == CircuitState.HALF_OPEN
        cb.record_failure()
        assert cb.state == CircuitState.OPEN

    def test_manual_reset(self):
        cb = CircuitBreaker("test", failure_threshold=1)
        cb.record_failure()
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0


class TestHalfOpenTrialCall:
    @pytest.fixture
    def half_open(self):
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.1)
        assert cb.state == CircuitState.HALF_OPEN
        return cb

    def test_only_one_caller_admitted(self, half_open):
        assert half_open.allow_request() is True
        assert half_open.allow_request() is False
        assert half_open.allow_request() is False

    def test_concurrent_callers_get_one_slot(self, half_open):
        barrier = threading.Barrier(8)
        admitted = []

        def worker():
            barrier.wait()
            admitted.append(half_open.allow_request())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert admitted.count(True) == 1

    def test_release_hands_slot_back(self, half_open):
        assert half_open.allow_request() is True
        half_open.release()
        assert half_open.state == CircuitState.HALF_OPEN
        assert half_open.allow_request() is True

    def test_failed_trial_reopens_and_blocks(self, half_open):
        assert half_open.allow_request() is True
        half_open.record_failure()
        assert half_open.state == CircuitState.OPEN
        assert half_open.allow_request() is False

    def test_successful_trial_admits_everyone(self, half_open):
        assert half_open.allow_request() is True
        half_open.record_success()
        assert all(half_open.allow_request() for _ in range(3))


class TestWorstState:
    def test_open_wins(self):
        closed = CircuitBreaker("a")
        opened = CircuitBreaker("b", failure_threshold=1)
        opened.record_failure()
        assert worst_state([closed, opened]) == CircuitState.OPEN

    def test_empty_is_closed(self):
        assert worst_state([]) == CircuitState.CLOSED


class TestGuardedStateStore:
    def test_passes_through_when_closed(self):
        inner = InMemoryStateStore()
        store = GuardedStateStore(inner)
        state = ServiceHealthState("svc", consecutive_healthy=3)
        store.save(state)
        assert store.load("svc") == state

    def test_one_breaker_per_operation(self):
        store = GuardedStateStore(InMemoryStateStore(), failure_threshold=4, recovery_timeout=5.0)
        assert set(store.breakers) == {"load", "save"}
        assert store.breakers["save"].name == "state-store.save"
        assert store.breakers["load"].failure_threshold == 4
        assert store.breakers["load"].recovery_timeout == 5.0

    def test_failures_are_reraised_and_counted(self):
        inner = MagicMock()
        inner.load.side_effect = StoreUnavailableError("load", "svc", "timeout")
        store = GuardedStateStore(inner, failure_threshold=2)
        for _ in range(2):
            with pytest.raises(StoreUnavailableError):
                store.load("svc")
        assert store.circuit_state == CircuitState.OPEN
        assert store.circuit_states == {"load": CircuitState.OPEN, "save": CircuitState.CLOSED}

    def test_open_circuit_fails_fast(self):
        inner = MagicMock()
        store = GuardedStateStore(inner, failure_threshold=1)
        store.breakers["save"].record_failure()
        with pytest.raises(StoreUnavailableError) as exc_info:
            store.save(ServiceHealthState.initial("svc"))
        assert exc_info.value.operation == "save"
        assert exc_info.value.cause == "circuit open"
        inner.save.assert_not_called()

    def test_load_success_does_not_clear_save_failures(self):
        inner = MagicMock()
        inner.load.return_value = ServiceHealthState.initial("svc")
        inner.save.side_effect = StoreUnavailableError("save", "svc", "AccessDeniedException")
        store = GuardedStateStore(inner, failure_threshold=3)
        for _ in range(3):
            state = store.load("svc")
            with pytest.raises(StoreUnavailableError):
                store.save(state)
        assert store.circuit_states["save"] == CircuitState.OPEN
        assert store.circuit_states["load"] == CircuitState.CLOSED

    def test_write_failures_open_circuit_through_controller(self):
        inner = MagicMock()
        inner.load.return_value = ServiceHealthState.initial("svc")
        inner.save.side_effect = StoreUnavailableError("save", "svc", "READONLY")
        controller = DegradationController(GuardedStateStore(inner), "svc")
        results = [controller.handle({}) for _ in range(10)]
        assert all(r.status_code == 503 for r in results)
        assert controller.store.circuit_state == CircuitState.OPEN
        assert inner.save.call_count == 3
        assert inner.load.call_count == 10

    def test_success_closes_after_trial_call(self):
        inner = InMemoryStateStore()
        store = GuardedStateStore(inner, failure_threshold=1, recovery_timeout=0.05)
        store.breakers["load"].record_failure()
        time.sleep(0.1)
        assert store.load("svc") == ServiceHealthState.initial("svc")
        assert store.circuit_state == CircuitState.CLOSED

    def test_other_exceptions_propagate_uncounted(self):
        inner = MagicMock()
        inner.load.side_effect = RuntimeError("bug")
        store = GuardedStateStore(inner, failure_threshold=1)
        with pytest.raises(RuntimeError):
            store.load("svc")
        assert store.circuit_state == CircuitState.CLOSED

    def test_uncounted_error_releases_trial_slot(self):
        inner = MagicMock()
        inner.load.side_effect = [RuntimeError("bug"), ServiceHealthState.initial("svc")]
        store = GuardedStateStore(inner, failure_threshold=1, recovery_timeout=0.05)
        store.breakers["load"].record_failure()
        time.sleep(0.1)
        with pytest.raises(RuntimeError):
            store.load("svc")
        assert store.load("svc") == ServiceHealthState.initial("svc")
        assert store.circuit_state == CircuitState.CLOSED
