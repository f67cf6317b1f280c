"""Three-level degradation state machine.

Pure function of ``(state, outcome)``: no I/O, no clock, no logging.  Each
call applies three steps in a fixed order:

1. Counter update: the observed outcome's streak grows by one and the
   opposite streak resets to zero.
2. Degradation check: LEVEL 1 → 2 after ``ERRORS_TO_LIMITED`` consecutive
   errors, LEVEL 2 → 3 after ``ERRORS_TO_MINIMAL``.
3. Recovery check: LEVEL 3 → 2 after ``HEALTHY_TO_LIMITED`` consecutive
   healthy outcomes, LEVEL 2 → 1 after ``HEALTHY_TO_HEALTHY``.

Steps 2 and 3 are independent conditionals evaluated one after the other.
Any level change resets both counters, so at most one of them fires per
call, but the recovery check always sees the post-degradation state.

Transitions::

    LEVEL 1 --5 errors--> LEVEL 2 --10 errors--> LEVEL 3
    LEVEL 1 <--20 ok----- LEVEL 2 <--10 ok------ LEVEL 3
"""

from __future__ import annotations

from dataclasses import dataclass

from levelguard.state import Level, ServiceHealthState

ERRORS_TO_LIMITED: int = 5    # LEVEL 1 -> 2
ERRORS_TO_MINIMAL: int = 10   # LEVEL 2 -> 3
HEALTHY_TO_LIMITED: int = 10  # LEVEL 3 -> 2
HEALTHY_TO_HEALTHY: int = 20  # LEVEL 2 -> 1


@dataclass(frozen=True, slots=True)
class Transition:
    """Result of one state-machine step.

    Attributes:
        previous: The state read before this step.
        state:    The state after this step (to be persisted).
        ok:       ``True`` when the observed outcome was healthy.
    """

    previous: ServiceHealthState
    state: ServiceHealthState
    ok: bool

    @property
    def changed(self) -> bool:
        """``True`` iff this step moved the service to another level."""
        return self.previous.current_level != self.state.current_level

    @property
    def from_level(self) -> Level:
        return self.previous.current_level

    @property
    def to_level(self) -> Level:
        return self.state.current_level


def _move_to(state: ServiceHealthState, level: Level) -> ServiceHealthState:
    return state.evolve(current_level=level, consecutive_errors=0, consecutive_healthy=0)


def advance(state: ServiceHealthState, healthy: bool) -> Transition:
    """Apply one observed outcome to *state* and return the :class:`Transition`."""
    if healthy:
        current = state.evolve(
            consecutive_healthy=state.consecutive_healthy + 1,
            consecutive_errors=0,
        )
    else:
        current = state.evolve(
            consecutive_errors=state.consecutive_errors + 1,
            consecutive_healthy=0,
        )

    # Degradation
    if current.current_level == Level.HEALTHY and current.consecutive_errors >= ERRORS_TO_LIMITED:
        current = _move_to(current, Level.LIMITED)
    elif current.current_level == Level.LIMITED and current.consecutive_errors >= ERRORS_TO_MINIMAL:
        current = _move_to(current, Level.MINIMAL)

    # Recovery
    if current.current_level == Level.MINIMAL and current.consecutive_healthy >= HEALTHY_TO_LIMITED:
        current = _move_to(current, Level.LIMITED)
    elif current.current_level == Level.LIMITED and current.consecutive_healthy >= HEALTHY_TO_HEALTHY:
        current = _move_to(current, Level.HEALTHY)

    return Transition(previous=state, state=current, ok=healthy)


def replay(state: ServiceHealthState, outcomes: list[bool]) -> ServiceHealthState:
    """Fold a sequence of outcomes through :func:`advance`."""
    for healthy in outcomes:
        state = advance(state, healthy).state
    return state
