"""Structured audit events for every controller invocation.

Events are single-line JSON documents written to the ``levelguard.events``
logger so any log shipper can parse them:

- ``LEVEL_TRANSITION`` — the level changed during this invocation.
- ``REQUEST_RESULT``   — one per persisted invocation.
- ``STORE_UNAVAILABLE`` — the state store could not be read or written.

A failure to emit an event never propagates to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from levelguard.exceptions import StoreUnavailableError
from levelguard.machine import Transition
from levelguard.responses import ControllerResponse

AUDIT_LOGGER_NAME = "levelguard.events"

LEVEL_TRANSITION = "LEVEL_TRANSITION"
REQUEST_RESULT = "REQUEST_RESULT"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

log = logging.getLogger(__name__)


class AuditLogger:
    """Emit controller events as JSON lines."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def _emit(self, level: int, event: dict[str, Any]) -> None:
        try:
            self.logger.log(level, json.dumps(event, default=str))
        except Exception as exc:
            log.warning("Dropped %s audit event: %s", event.get("eventType"), exc)

    def level_transition(self, time: str, service_id: str, transition: Transition) -> None:
        self._emit(
            logging.INFO,
            {
                "time": time,
                "eventType": LEVEL_TRANSITION,
                "serviceId": service_id,
                "from": int(transition.from_level),
                "to": int(transition.to_level),
            },
        )

    def request_result(
        self,
        time: str,
        requested_error: bool,
        transition: Transition,
        response: ControllerResponse,
    ) -> None:
        state = transition.state
        self._emit(
            logging.INFO,
            {
                "time": time,
                "eventType": REQUEST_RESULT,
                "serviceId": state.service_id,
                "requestedError": requested_error,
                "level": int(state.current_level),
                "consecutiveErrors": state.consecutive_errors,
                "consecutiveHealthy": state.consecutive_healthy,
                "statusCode": response.status_code,
                "message": response.message,
            },
        )

    def store_unavailable(self, time: str, error: StoreUnavailableError) -> None:
        self._emit(
            logging.ERROR,
            {
                "time": time,
                "eventType": STORE_UNAVAILABLE,
                "serviceId": error.service_id,
                "operation": error.operation,
                "error": error.cause,
            },
        )

    def record(
        self,
        time: str,
        requested_error: bool,
        transition: Transition,
        response: ControllerResponse,
    ) -> None:
        """Emit the events for one persisted invocation.

        ``LEVEL_TRANSITION`` (when the level changed) precedes
        ``REQUEST_RESULT``.
        """
        if transition.changed:
            self.level_transition(time, transition.state.service_id, transition)
        self.request_result(time, requested_error, transition, response)
