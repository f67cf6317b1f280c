"""DynamoDB-backed state store.

One item per service in the configured table, keyed by ``serviceId``::

    {"serviceId": "core-system", "currentLevel": 2,
     "consecutiveErrors": 0, "consecutiveHealthy": 7}

Uses boto3, imported lazily in :meth:`DynamoDBStateStore.from_settings`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from levelguard.exceptions import StoreUnavailableError
from levelguard.state import ServiceHealthState

if TYPE_CHECKING:
    from levelguard.config import Settings

log = logging.getLogger(__name__)

KEY_ATTRIBUTE = "serviceId"


class DynamoTableProto(Protocol):
    """Subset of ``boto3.resource("dynamodb").Table`` used here."""

    def get_item(self, **kwargs: Any) -> dict[str, Any]:
        ...

    def put_item(self, **kwargs: Any) -> dict[str, Any]:
        ...


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return f"{error.get('Code', 'ClientError')}: {error.get('Message', '')}".rstrip(": ")
    return f"{type(exc).__name__}: {exc}"


class DynamoDBStateStore:
    """Read and overwrite health records in a DynamoDB table."""

    def __init__(self, table: DynamoTableProto, *, consistent_read: bool = True) -> None:
        self.table = table
        self.consistent_read = consistent_read

    @classmethod
    def from_settings(cls, settings: Settings) -> DynamoDBStateStore:
        """Build a store on ``settings.table_name`` with bounded timeouts."""
        import boto3
        from botocore.config import Config

        config = Config(
            connect_timeout=settings.store_timeout,
            read_timeout=settings.store_timeout,
            retries={"max_attempts": 2, "mode": "standard"},
        )
        resource = boto3.resource(
            "dynamodb",
            region_name=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
            config=config,
        )
        log.info("DynamoDB state store on table %s", settings.table_name)
        return cls(resource.Table(settings.table_name))

    def load(self, service_id: str) -> ServiceHealthState:
        try:
            response = self.table.get_item(
                Key={KEY_ATTRIBUTE: service_id},
                ConsistentRead=self.consistent_read,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailableError("load", service_id, _describe(exc)) from exc
        return ServiceHealthState.from_record(service_id, response.get("Item"))

    def save(self, state: ServiceHealthState) -> None:
        try:
            self.table.put_item(Item=state.to_record())
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailableError("save", state.service_id, _describe(exc)) from exc
