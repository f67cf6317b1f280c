"""Persisted service-health record.

One ``ServiceHealthState`` exists per service identifier.  The stored form
uses the camelCase field names of the persisted schema::

    {"serviceId": "core-system", "currentLevel": 1,
     "consecutiveErrors": 0, "consecutiveHealthy": 0}

Records written by older deployments may lack fields or carry values of an
unexpected shape; :meth:`ServiceHealthState.from_record` substitutes the
default for each unusable field instead of failing the read.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import IntEnum
from typing import Any

log = logging.getLogger(__name__)


class Level(IntEnum):
    """Operating level; higher means more degraded."""

    HEALTHY = 1
    LIMITED = 2
    MINIMAL = 3


@dataclass(frozen=True, slots=True)
class ServiceHealthState:
    """Immutable snapshot of one service's health record."""

    service_id: str
    current_level: Level = Level.HEALTHY
    consecutive_errors: int = 0
    consecutive_healthy: int = 0

    @classmethod
    def initial(cls, service_id: str) -> ServiceHealthState:
        """Default state for a service identifier with no stored record."""
        return cls(service_id=service_id)

    @classmethod
    def from_record(
        cls,
        service_id: str,
        record: Mapping[str, Any] | None,
    ) -> ServiceHealthState:
        """Build a state from a stored record, defaulting absent or bad fields.

        The *service_id* argument is authoritative; a ``serviceId`` value in
        the record is ignored.
        """
        if not record:
            return cls.initial(service_id)
        return cls(
            service_id=service_id,
            current_level=_coerce_level(record.get("currentLevel")),
            consecutive_errors=_coerce_counter(record.get("consecutiveErrors")),
            consecutive_healthy=_coerce_counter(record.get("consecutiveHealthy")),
        )

    def to_record(self) -> dict[str, Any]:
        """Return the full persisted record (plain ``str`` / ``int`` values)."""
        return {
            "serviceId": self.service_id,
            "currentLevel": int(self.current_level),
            "consecutiveErrors": self.consecutive_errors,
            "consecutiveHealthy": self.consecutive_healthy,
        }

    def evolve(self, **changes: Any) -> ServiceHealthState:
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _as_int(value: Any) -> int | None:
    """Return *value* as an ``int`` if it is an integral number, else ``None``.

    Accepts ``int``, integral ``float`` / ``Decimal`` (DynamoDB returns
    numbers as ``Decimal``) and decimal strings or bytes (Redis hashes store
    strings).  ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            if value == int(value):
                return int(value)
        except (ValueError, OverflowError, ArithmeticError):
            return None
        return None
    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError:
            return None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _coerce_level(value: Any) -> Level:
    number = _as_int(value)
    try:
        return Level(number)
    except ValueError:
        if value is not None:
            log.warning("Ignoring stored currentLevel %r; using %d", value, Level.HEALTHY)
        return Level.HEALTHY


def _coerce_counter(value: Any) -> int:
    number = _as_int(value)
    if number is None or number < 0:
        if value is not None:
            log.warning("Ignoring stored counter %r; using 0", value)
        return 0
    return number
