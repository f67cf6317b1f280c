"""Inbound payload parsing and outcome classification.

The request body arrives in one of three shapes: absent, a JSON document
(as ``str`` or ``bytes``), or an object that a gateway already decoded.
:func:`parse_body` turns it into an explicit ``Payload`` value:

- ``Absent``      — no body at all.
- ``Malformed``   — a body that is not a JSON object.
- ``Structured``  — a decoded JSON object.

:func:`requested_error` is total over ``Payload``: only
``Structured({"error": True, ...})`` counts as an error outcome.  Nothing in
this module raises to the caller.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from levelguard.exceptions import PayloadParseError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Absent:
    """No request body."""


@dataclass(frozen=True, slots=True)
class Malformed:
    """A body that could not be decoded into a JSON object."""

    reason: str


@dataclass(frozen=True, slots=True)
class Structured:
    """A decoded JSON object body."""

    fields: Mapping[str, Any] = field(default_factory=dict)


Payload = Absent | Malformed | Structured


def _decode_json_object(raw: str | bytes) -> dict[str, Any]:
    """Decode *raw* as UTF-8 JSON and require a top-level object.

    Raises:
        PayloadParseError: On invalid UTF-8, invalid JSON or a non-object.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadParseError(f"invalid UTF-8: {exc}") from exc
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PayloadParseError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(decoded, dict):
        raise PayloadParseError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def parse_body(body: Any) -> Payload:
    """Classify a raw request body into a :data:`Payload`."""
    if body is None:
        return Absent()
    if isinstance(body, Mapping):
        return Structured(dict(body))
    if isinstance(body, bytearray):
        body = bytes(body)
    if isinstance(body, (str, bytes)):
        try:
            return Structured(_decode_json_object(body))
        except PayloadParseError as exc:
            log.debug("Treating request body as malformed: %s", exc.reason)
            return Malformed(exc.reason)
    return Malformed(f"unsupported body type {type(body).__name__}")


def parse_event(event: Any) -> Payload:
    """Extract and classify the body of a gateway-style event mapping.

    ``isBase64Encoded: true`` bodies are base64-decoded before parsing.
    """
    if not isinstance(event, Mapping):
        return Absent()
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded") is True:
        try:
            body = base64.b64decode(body, validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            log.debug("Treating request body as malformed: bad base64 (%s)", exc)
            return Malformed(f"invalid base64: {exc}")
    return parse_body(body)


def requested_error(payload: Payload) -> bool:
    """Return ``True`` only when the payload explicitly sets ``error`` to true."""
    match payload:
        case Structured(fields=fields):
            return fields.get("error") is True
        case Absent() | Malformed():
            return False
    return False
