"""Per-request orchestration and the Lambda-style entry point.

One invocation runs, in order::

    parse body → classify outcome → load state → advance → build response
    → save state → emit audit events → return

If the store cannot be read or written the invocation returns the 503
"controller unavailable" response instead.  A state computed but not saved
is discarded: no ``LEVEL_TRANSITION`` or ``REQUEST_RESULT`` event is emitted
for it, only ``STORE_UNAVAILABLE``.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from levelguard.audit import AuditLogger
from levelguard.config import Settings, configure_logging
from levelguard.exceptions import StoreUnavailableError
from levelguard.machine import Transition, advance
from levelguard.payload import Payload, parse_body, parse_event, requested_error
from levelguard.responses import (
    ControllerResponse,
    ResponseBody,
    build_response,
    unavailable_response,
)
from levelguard.storage import StateStore, build_store

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ControllerResult:
    """Outcome of one invocation.

    ``transition`` is ``None`` when the store was unavailable.
    """

    time: str
    response: ControllerResponse
    requested_error: bool
    transition: Transition | None = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def level(self) -> int | None:
        if self.transition is None:
            return None
        return int(self.transition.to_level)

    def body(self) -> ResponseBody:
        return ResponseBody(time=self.time, level=self.level, message=self.response.message)

    def to_proxy_response(self) -> dict[str, Any]:
        """Gateway proxy-integration shape: ``{statusCode, headers, body}``."""
        return {
            "statusCode": self.status_code,
            "headers": dict(JSON_HEADERS),
            "body": json.dumps(self.body().model_dump()),
        }


class DegradationController:
    """Apply one outcome per request to a single service's health record."""

    def __init__(
        self,
        store: StateStore,
        service_id: str,
        audit: AuditLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.service_id = service_id
        self.audit = audit or AuditLogger()
        self.clock = clock

    def handle(self, body: Any) -> ControllerResult:
        """Process a raw request body (``None``, ``str``/``bytes`` or a mapping)."""
        return self.handle_payload(parse_body(body))

    def handle_event(self, event: Any) -> dict[str, Any]:
        """Process a gateway event and return the proxy response dict."""
        return self.handle_payload(parse_event(event)).to_proxy_response()

    def handle_payload(self, payload: Payload) -> ControllerResult:
        now = isoformat(self.clock())
        is_error = requested_error(payload)

        try:
            state = self.store.load(self.service_id)
        except StoreUnavailableError as exc:
            return self._unavailable(now, is_error, exc)

        transition = advance(state, healthy=not is_error)
        response = build_response(transition.to_level, transition.ok)

        try:
            self.store.save(transition.state)
        except StoreUnavailableError as exc:
            return self._unavailable(now, is_error, exc)

        self.audit.record(now, is_error, transition, response)
        return ControllerResult(
            time=now,
            response=response,
            requested_error=is_error,
            transition=transition,
        )

    def _unavailable(
        self, now: str, is_error: bool, exc: StoreUnavailableError
    ) -> ControllerResult:
        logger.error("Controller unavailable: %s", exc)
        self.audit.store_unavailable(now, exc)
        return ControllerResult(time=now, response=unavailable_response(), requested_error=is_error)


# ---------------------------------------------------------------------------
# Process-wide controller (store connection reused across invocations)
# ---------------------------------------------------------------------------

_controller: DegradationController | None = None
_controller_lock = threading.Lock()


def get_controller(settings: Settings | None = None) -> DegradationController:
    """Get or create the process-wide controller from *settings*."""
    global _controller
    if _controller is not None:
        return _controller
    with _controller_lock:
        if _controller is None:
            settings = settings or Settings()
            configure_logging(settings.log_level)
            _controller = DegradationController(
                store=build_store(settings),
                service_id=settings.service_id,
            )
            logger.info(
                "Controller ready: service_id=%s backend=%s table=%s",
                settings.service_id,
                settings.store_backend,
                settings.table_name,
            )
        return _controller


def set_controller(controller: DegradationController | None) -> None:
    """Replace the process-wide controller (``None`` forces a rebuild)."""
    global _controller
    with _controller_lock:
        _controller = controller


def handler(event: Any, context: Any = None) -> dict[str, Any]:
    """Lambda entry point."""
    return get_controller().handle_event(event)
