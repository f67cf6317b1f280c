"""Exception hierarchy for the degradation controller.

All controller exceptions inherit from ``LevelGuardError`` so entry points
can handle them with a single ``except LevelGuardError``.  Only
``StoreUnavailableError`` is ever surfaced to callers; payload problems are
recovered inside :mod:`levelguard.payload`.
"""

from __future__ import annotations


class LevelGuardError(Exception):
    """Base exception for all controller failures."""

    __slots__ = ()


class PayloadParseError(LevelGuardError):
    """Raised when a request body cannot be decoded into a JSON object.

    Never escapes :func:`levelguard.payload.parse_body`; it is converted to
    a ``Malformed`` payload there.
    """

    __slots__ = ("reason",)

    def __init__(self, reason: str) -> None:
        super().__init__(f"Unparseable request body: {reason}")
        self.reason = reason


class StoreUnavailableError(LevelGuardError):
    """Raised when the state store cannot be read or written.

    Attributes
    ----------
    operation : str
        ``"load"`` or ``"save"``.
    service_id : str
        The record key involved in the failed call.
    cause : str
        Short description of the underlying failure.
    """

    __slots__ = ("cause", "operation", "service_id")

    def __init__(self, operation: str, service_id: str, cause: str) -> None:
        super().__init__(
            f"State store {operation} failed for {service_id!r}: {cause}"
        )
        self.operation = operation
        self.service_id = service_id
        self.cause = cause


class ConfigurationError(LevelGuardError):
    """Raised when settings name an unknown store backend."""

    __slots__ = ("detail",)

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
