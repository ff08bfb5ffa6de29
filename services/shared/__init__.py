"""Shared utilities used across the salon services."""

from .config import ServiceConfig, load_service_config
from .messaging import ChangeBus, ChangeBusRegistry
from .kvstore import (
    KeyValueStore,
    RedisKeyValueStore,
    SqlKeyValueStore,
    StorageError,
    StorageEvent,
)
from .cache import CollectionCache, get_cache_ttl
from .health import create_health_router
from .results import OperationResult
from .startup import ensure_schema, store_lifespan_factory

__all__ = [
    "ServiceConfig",
    "load_service_config",
    "ChangeBus",
    "ChangeBusRegistry",
    "KeyValueStore",
    "RedisKeyValueStore",
    "SqlKeyValueStore",
    "StorageError",
    "StorageEvent",
    "CollectionCache",
    "get_cache_ttl",
    "create_health_router",
    "OperationResult",
    "ensure_schema",
    "store_lifespan_factory",
]
