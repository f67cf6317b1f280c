"""Status code and message for each (level, outcome) pair."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from levelguard.state import Level


@dataclass(frozen=True, slots=True)
class ControllerResponse:
    status_code: int
    message: str


# (level, ok) -> response; single source of truth for user-facing text
RESPONSE_TABLE: dict[tuple[Level, bool], ControllerResponse] = {
    (Level.HEALTHY, True): ControllerResponse(200, "Level 1: OK"),
    (Level.HEALTHY, False): ControllerResponse(500, "Error at Level 1"),
    (Level.LIMITED, True): ControllerResponse(200, "Level 2: Limited Operation"),
    (Level.LIMITED, False): ControllerResponse(500, "Error at Level 2"),
    (Level.MINIMAL, True): ControllerResponse(200, "Level 3: Minimal Operation"),
    (Level.MINIMAL, False): ControllerResponse(
        500, "Level 3: System under maintenance, try later"
    ),
}

UNAVAILABLE = ControllerResponse(503, "Degradation controller unavailable, try later")


def build_response(level: Level, ok: bool) -> ControllerResponse:
    """Look up the response for *level* and outcome *ok*."""
    return RESPONSE_TABLE[(Level(level), bool(ok))]


def unavailable_response() -> ControllerResponse:
    """Response used when the state store cannot be reached."""
    return UNAVAILABLE


class ResponseBody(BaseModel):
    """JSON body returned to the caller.

    ``level`` is ``None`` only when the controller itself is unavailable.
    """

    time: str
    level: int | None
    message: str
