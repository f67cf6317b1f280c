"""levelguard — three-level service degradation controller."""

from __future__ import annotations

from levelguard.handler import DegradationController, handler
from levelguard.machine import advance
from levelguard.state import Level, ServiceHealthState

__all__ = [
    "DegradationController",
    "Level",
    "ServiceHealthState",
    "advance",
    "handler",
]

__version__ = "0.1.0"
