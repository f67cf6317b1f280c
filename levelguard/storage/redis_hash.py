"""Redis-backed state store.

Each service's record is a hash at ``{table_name}:{service_id}``.  Hash
values come back as strings and are coerced by
:meth:`ServiceHealthState.from_record`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import redis as redis_lib

from levelguard.exceptions import StoreUnavailableError
from levelguard.state import ServiceHealthState

if TYPE_CHECKING:
    from levelguard.config import Settings

log = logging.getLogger(__name__)


def record_key(table_name: str, service_id: str) -> str:
    """Build the hash key for a service: ``{table_name}:{service_id}``."""
    return f"{table_name}:{service_id}"


class RedisClientProto(Protocol):
    """Subset of the synchronous ``redis.Redis`` client used here."""

    def hgetall(self, name: str) -> dict[Any, Any]:
        ...

    def pipeline(self, transaction: bool = True) -> Any:
        ...


class RedisStateStore:
    """Read and overwrite health records stored as Redis hashes."""

    def __init__(self, client: RedisClientProto, table_name: str) -> None:
        self.client = client
        self.table_name = table_name

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisStateStore:
        client = redis_lib.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.store_timeout,
            socket_connect_timeout=settings.store_timeout,
        )
        log.info("Redis state store under prefix %s", settings.table_name)
        return cls(client, settings.table_name)

    def load(self, service_id: str) -> ServiceHealthState:
        try:
            raw = self.client.hgetall(record_key(self.table_name, service_id))
        except redis_lib.RedisError as exc:
            raise StoreUnavailableError("load", service_id, f"{type(exc).__name__}: {exc}") from exc
        record = {
            (k.decode() if isinstance(k, bytes) else k): v for k, v in (raw or {}).items()
        }
        return ServiceHealthState.from_record(service_id, record)

    def save(self, state: ServiceHealthState) -> None:
        key = record_key(self.table_name, state.service_id)
        try:
            # DEL + HSET in one MULTI so stale fields never survive a save
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.hset(key, mapping=state.to_record())
            pipe.execute()
        except redis_lib.RedisError as exc:
            raise StoreUnavailableError(
                "save", state.service_id, f"{type(exc).__name__}: {exc}"
            ) from exc
