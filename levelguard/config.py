"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic_settings import BaseSettings

DEFAULT_TABLE_NAME = "system_state"
DEFAULT_SERVICE_ID = "core-system"

_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


class StoreBackend(str, Enum):
    """Supported state store backends."""

    DYNAMODB = "dynamodb"
    REDIS = "redis"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Controller settings, read from the environment or a ``.env`` file."""

    table_name: str = DEFAULT_TABLE_NAME
    service_id: str = DEFAULT_SERVICE_ID
    store_backend: str = StoreBackend.DYNAMODB.value

    # DynamoDB
    aws_region: str | None = None
    dynamodb_endpoint_url: str | None = None

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    store_timeout: float = 2.0  # seconds, applied to connect and read
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    else:
        root.setLevel(level.upper())
