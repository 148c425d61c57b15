"""RoadStore - Shared Redis Cache Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A cache store that lets many independent caches share one Redis server:
- One Redis hash per cache definition, purged with a single DEL
- Optional TTL through a sorted write-time index and batched expiry
- Pluggable serialization (pickle, MessagePack) and compression (gzip, zstd)
- Cross-process locks with jittered polling and crash-safe release
- Single node, unix socket, TLS and Redis Cluster connections
- Degrades to a miss-everything store when Redis is unreachable

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        RoadStore System                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌──────────────────────────────┐  ┌────────────────────┐       │
    │  │          RedisStore          │  │    LockManager     │ STORE │
    │  │ get/set/delete/has/find/purge│  │ acquire/check/     │ LAYER │
    │  │          expire_ttl          │  │ release            │       │
    │  └──────┬───────────────┬───────┘  └─────────┬──────────┘       │
    │         │               │                    │                  │
    │  ┌──────┴──────┐ ┌──────┴──────┐             │                  │
    │  │ CodecPipe-  │ │  TTLIndex   │             │         CODEC /  │
    │  │ line        │ │ sorted set  │             │         INDEX    │
    │  └─────────────┘ └──────┬──────┘             │                  │
    │                         │                    │                  │
    │  ┌──────────────────────┴────────────────────┴───┐              │
    │  │              RedisConnection                   │  CONNECTION │
    │  │   node / unix socket / TLS / cluster, prefix   │  LAYER      │
    │  └────────────────────────────────────────────────┘              │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from roadstore_core import CacheDefinition, RedisStore

    store = RedisStore("shared", {
        "server": "redis-1.local:6379",
        "prefix": "site1_",
        "compressor": "zstd",
    })
    store.initialise(CacheDefinition("core/coursemodinfo", ttl=3600))

    store.set("course:1", {"sections": 12})
    store.get("course:1")

    # Scheduled cleanup of entries older than the TTL
    store.expire_ttl()

    # Cross-process lock
    with store.lock("rebuild:course:1", owner="worker-17"):
        rebuild()
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from roadstore_core.clock import Clock, default_clock
from roadstore_core.definition import CacheDefinition, StoreMode
from roadstore_core.exceptions import (
    RoadStoreError,
    CodingError,
    TTLNotSupportedError,
    StoreNotInitialisedError,
    CodecError,
    LockNotAcquiredError,
)
from roadstore_core.protocol.codec import CodecPipeline, IO_BYTES_NOT_SUPPORTED
from roadstore_core.protocol.serializer import SerializerType
from roadstore_core.protocol.compressor import CompressorType
from roadstore_core.lock.manager import LockManager, LockState
from roadstore_core.store.backend import (
    CacheStore,
    KeyAwareStore,
    SearchableStore,
    LockableStore,
    ConfigurableStore,
    StoreFeature,
)
from roadstore_core.store.config import RedisConfig
from roadstore_core.store.ttl import ExpiryResult
from roadstore_core.store.redis import RedisStore

__all__ = [
    # Store
    "RedisStore",
    "RedisConfig",
    "CacheDefinition",
    "StoreMode",
    "ExpiryResult",
    # Capabilities
    "CacheStore",
    "KeyAwareStore",
    "SearchableStore",
    "LockableStore",
    "ConfigurableStore",
    "StoreFeature",
    # Codec
    "CodecPipeline",
    "SerializerType",
    "CompressorType",
    "IO_BYTES_NOT_SUPPORTED",
    # Locks
    "LockManager",
    "LockState",
    # Time
    "Clock",
    "default_clock",
    # Errors
    "RoadStoreError",
    "CodingError",
    "TTLNotSupportedError",
    "StoreNotInitialisedError",
    "CodecError",
    "LockNotAcquiredError",
]
