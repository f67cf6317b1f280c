"""State store backends for the degradation controller."""

from __future__ import annotations

from typing import TYPE_CHECKING

from levelguard.config import StoreBackend
from levelguard.exceptions import ConfigurationError
from levelguard.storage.base import GuardedStateStore, InMemoryStateStore, StateStore

if TYPE_CHECKING:
    from levelguard.config import Settings

__all__ = [
    "GuardedStateStore",
    "InMemoryStateStore",
    "StateStore",
    "build_store",
]


def build_store(settings: Settings) -> GuardedStateStore:
    """Create the backend named by ``settings.store_backend``, circuit-guarded."""
    try:
        backend = StoreBackend(settings.store_backend.lower())
    except ValueError:
        valid = ", ".join(b.value for b in StoreBackend)
        raise ConfigurationError(
            f"Unknown store backend {settings.store_backend!r} (expected one of: {valid})"
        ) from None

    inner: StateStore
    if backend is StoreBackend.DYNAMODB:
        from levelguard.storage.dynamodb import DynamoDBStateStore

        inner = DynamoDBStateStore.from_settings(settings)
    elif backend is StoreBackend.REDIS:
        from levelguard.storage.redis_hash import RedisStateStore

        inner = RedisStateStore.from_settings(settings)
    else:
        inner = InMemoryStateStore()
    return GuardedStateStore(inner)
