"""Store module - Redis cache store and its building blocks."""

from roadstore_core.store.backend import (
    CacheStore,
    KeyAwareStore,
    SearchableStore,
    LockableStore,
    ConfigurableStore,
    StoreFeature,
    StorageStats,
)
from roadstore_core.store.config import RedisConfig
from roadstore_core.store.connection import RedisConnection, ServerAddress, connect
from roadstore_core.store.ttl import ExpiryResult, TTLIndex
from roadstore_core.store.redis import RedisStore

__all__ = [
    "CacheStore",
    "KeyAwareStore",
    "SearchableStore",
    "LockableStore",
    "ConfigurableStore",
    "StoreFeature",
    "StorageStats",
    "RedisConfig",
    "RedisConnection",
    "ServerAddress",
    "connect",
    "ExpiryResult",
    "TTLIndex",
    "RedisStore",
]
