"""RoadStore Redis Store - Shared Redis Cache Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from redis.exceptions import RedisError

from roadstore_core.clock import Clock, default_clock
from roadstore_core.definition import CacheDefinition, StoreMode
from roadstore_core.exceptions import (
    CodecError,
    CodingError,
    StoreNotInitialisedError,
    TTLNotSupportedError,
)
from roadstore_core.lock.manager import LockManager, LockState
from roadstore_core.protocol.codec import IO_BYTES_NOT_SUPPORTED, CodecPipeline, payload_size
from roadstore_core.protocol.compressor import CompressorType
from roadstore_core.protocol.serializer import SerializerType
from roadstore_core.store.backend import (
    CacheStore,
    ConfigurableStore,
    KeyAwareStore,
    LockableStore,
    SearchableStore,
    StoreFeature,
)
from roadstore_core.store.config import RedisConfig
from roadstore_core.store.connection import RedisConnection, connect
from roadstore_core.store.ttl import ExpiryResult, TTLIndex

logger = logging.getLogger(__name__)

TEST_SERVERS_ENV = "ROADSTORE_TEST_REDIS_SERVERS"
TEST_ENCRYPT_ENV = "ROADSTORE_TEST_REDIS_ENCRYPT"
TEST_PREFIX_ENV = "ROADSTORE_TEST_REDIS_PREFIX"

# Settings kept when building a configuration from submitted data.
CONFIGURATION_KEYS = (
    "server",
    "prefix",
    "password",
    "serializer",
    "compressor",
    "connectiontimeout",
    "lockwait",
    "locktimeout",
    "encryption",
    "cafile",
    "clustermode",
)

Pairs = Union[Mapping[str, Any], Iterable[Union[Tuple[str, Any], Mapping[str, Any]]]]


class RedisStore(CacheStore, KeyAwareStore, SearchableStore, LockableStore, ConfigurableStore):
    """Cache store keeping each cache definition in one Redis hash.

    One hash per definition lets many caches share a Redis instance and
    makes purging a single DEL. Hash fields cannot expire natively, so
    definitions with a TTL also maintain a sorted index of write times
    that expire_ttl() sweeps periodically.

    A store that cannot connect is not ready: reads miss, writes fail and
    nothing raises.

    Example:
        store = RedisStore("shared", {"server": "redis.local:6379", "compressor": "zstd"})
        store.initialise(CacheDefinition("core/config", ttl=3600))
        store.set("key", {"some": "data"})
        store.get("key")
    """

    TTL_EXPIRE_BATCH = 10000

    def __init__(
        self,
        name: str,
        configuration: Optional[Union[RedisConfig, Mapping[str, Any]]] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize Redis store.

        Args:
            name: Store instance name
            configuration: RedisConfig or configuration mapping
            clock: Clock for TTL scoring, shared default if omitted
        """
        super().__init__(name)
        if isinstance(configuration, RedisConfig):
            self.config = configuration
        else:
            self.config = RedisConfig.from_dict(configuration or {})

        self._clock = clock or default_clock
        self._codec = CodecPipeline(self.config.serializer, self.config.compressor)
        self._last_io_bytes = 0
        self._hash: Optional[str] = None
        self._ttl_index: Optional[TTLIndex] = None

        if self.config.has_server:
            self._connection = connect(self.config)
        else:
            self._connection = RedisConnection(prefix=self.config.prefix)

        self._locks = LockManager(
            self._connection,
            lock_wait=self.config.lockwait,
            lock_timeout=self.config.locktimeout,
            fast_delay_ms=self.config.lock_fast_delay_ms,
            slow_delay_ms=self.config.lock_slow_delay_ms,
            fast_period=self.config.lock_fast_period,
        )

    # Capabilities

    @classmethod
    def get_supported_features(cls, configuration: Optional[Mapping[str, Any]] = None) -> StoreFeature:
        # Not SUPPORTS_NATIVE_TTL: expiry is only enforced by expire_ttl()
        # runs, so callers must keep checking TTLs on read.
        return (
            StoreFeature.SUPPORTS_DATA_GUARANTEE
            | StoreFeature.DEREFERENCES_OBJECTS
            | StoreFeature.IS_SEARCHABLE
        )

    @classmethod
    def get_supported_modes(cls, configuration: Optional[Mapping[str, Any]] = None) -> List[StoreMode]:
        return [StoreMode.APPLICATION, StoreMode.SESSION]

    @classmethod
    def config_get_serializer_options(cls) -> Dict[SerializerType, str]:
        return {
            SerializerType.GENERIC: "Python pickle",
            SerializerType.COMPACT: "MessagePack",
        }

    @classmethod
    def config_get_compressor_options(cls) -> Dict[CompressorType, str]:
        return {
            CompressorType.NONE: "No compression",
            CompressorType.GZIP: "Gzip",
            CompressorType.ZSTD: "Zstandard",
        }

    @classmethod
    def config_get_configuration_array(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Build a stored configuration from submitted settings.

        Args:
            data: Submitted settings

        Returns:
            Configuration mapping with recognized keys only
        """
        return {key: data[key] for key in CONFIGURATION_KEYS if key in data}

    @classmethod
    def config_get_form_data(cls, configuration: Mapping[str, Any]) -> Dict[str, Any]:
        """Build editable settings from a stored configuration.

        Args:
            configuration: Stored configuration

        Returns:
            Settings; optional ones only when set
        """
        data = {
            "server": configuration.get("server", ""),
            "prefix": configuration.get("prefix") or "",
            "password": configuration.get("password") or "",
        }
        for key in CONFIGURATION_KEYS[3:]:
            if configuration.get(key):
                data[key] = configuration[key]
        return data

    # Lifecycle

    def initialise(self, definition: CacheDefinition) -> bool:
        super().initialise(definition)
        self._hash = self._connection.make_key(definition.definition_hash)
        self._ttl_index = TTLIndex(self._connection, definition.definition_hash)
        return True

    def is_ready(self) -> bool:
        return self._connection.ready

    def instance_deleted(self) -> None:
        """Release held locks and close the connection.

        The store must not be used afterwards.
        """
        self._locks.close()
        self._connection.close()

    @property
    def hash_key(self) -> Optional[str]:
        """Remote hash holding this definition's entries."""
        return self._hash

    @property
    def _client(self) -> Any:
        return self._connection.client

    def _require_definition(self) -> CacheDefinition:
        if self.definition is None:
            raise StoreNotInitialisedError(self.name)
        return self.definition

    def _remote_error(self, operation: str, error: Exception) -> None:
        logger.error(f"Redis {operation} error on {self.name}: {error}")
        self._stats.record_error(str(error))

    def _codec_error(self, key: str, error: CodecError) -> None:
        logger.error(f"Unusable value for {key} on {self.name}: {error}")
        self._stats.record_error(str(error))

    def _decode(self, key: str, data: Optional[bytes]) -> Any:
        # Entries written under another codec configuration read as misses.
        try:
            return self._codec.decode(data)
        except CodecError as e:
            self._codec_error(key, e)
            return None

    # Read path

    def get(self, key: str) -> Any:
        """Get value by key.

        Args:
            key: Cache key

        Returns:
            Value or None
        """
        self._require_definition()
        if not self.is_ready():
            return None

        try:
            self._stats.reads += 1
            data = self._client.hget(self._hash, key)
        except RedisError as e:
            self._remote_error("get", e)
            return None

        if self._codec.compression_enabled:
            self._last_io_bytes = payload_size(data)
        return self._decode(key, data)

    def get_many(self, keys: Sequence[str]) -> List[Any]:
        """Get values for many keys in one round trip.

        Args:
            keys: Cache keys

        Returns:
            Values in input order, None for misses
        """
        self._require_definition()
        keys = list(keys)
        if not keys or not self.is_ready():
            return [None] * len(keys)

        try:
            self._stats.reads += len(keys)
            values = self._client.hmget(self._hash, keys) or [None] * len(keys)
        except RedisError as e:
            self._remote_error("get_many", e)
            return [None] * len(keys)

        total = 0
        result = []
        for key, data in zip(keys, values):
            total += payload_size(data)
            result.append(self._decode(key, data))

        if self._codec.compression_enabled:
            self._last_io_bytes = total
        return result

    def has(self, key: str) -> bool:
        self._require_definition()
        if not self.is_ready():
            return False
        try:
            return bool(self._client.hexists(self._hash, key))
        except RedisError as e:
            self._remote_error("has", e)
            return False

    def find_all(self) -> List[str]:
        """Get every key of this store.

        Returns:
            Keys, unordered
        """
        self._require_definition()
        if not self.is_ready():
            return []
        try:
            fields = self._client.hkeys(self._hash)
        except RedisError as e:
            self._remote_error("find_all", e)
            return []
        return [f.decode("utf-8") if isinstance(f, bytes) else f for f in fields]

    # Write path

    def set(self, key: str, value: Any) -> bool:
        """Store a value.

        With a TTL the key is also stamped in the TTL index; a failure
        there is logged but does not fail the write.

        Args:
            key: Cache key
            value: Value

        Returns:
            True if successful
        """
        definition = self._require_definition()
        if not self.is_ready():
            return False

        try:
            payload = self._codec.encode(value)
        except CodecError as e:
            self._codec_error(key, e)
            return False
        if self._codec.compression_enabled:
            self._last_io_bytes = payload_size(payload)

        try:
            self._client.hset(self._hash, key, payload)
        except RedisError as e:
            self._remote_error("set", e)
            return False
        self._stats.writes += 1

        if definition.uses_ttl:
            try:
                self._ttl_index.touch([key], self._clock.time())
            except RedisError as e:
                self._remote_error("TTL index update", e)
        return True

    def set_many(self, pairs: Pairs) -> int:
        """Store many values with one HSET and at most one ZADD.

        Args:
            pairs: Mapping, (key, value) tuples or {"key", "value"} dicts

        Returns:
            Number of fields written, 0 on failure
        """
        definition = self._require_definition()
        if not self.is_ready():
            return 0

        fields: Dict[str, Any] = {}
        total = 0
        for key, value in _iter_pairs(pairs):
            try:
                fields[key] = self._codec.encode(value)
            except CodecError as e:
                self._codec_error(key, e)
                return 0
            total += payload_size(fields[key])
        if not fields:
            return 0
        if self._codec.compression_enabled:
            self._last_io_bytes = total

        try:
            self._client.hset(self._hash, mapping=fields)
        except RedisError as e:
            self._remote_error("set_many", e)
            return 0
        self._stats.writes += len(fields)

        if definition.uses_ttl:
            try:
                self._ttl_index.touch(list(fields), self._clock.time())
            except RedisError as e:
                self._remote_error("TTL index update", e)
        return len(fields)

    def delete(self, key: str) -> bool:
        """Delete a key.

        Args:
            key: Cache key

        Returns:
            True if the key existed and was deleted
        """
        return self.delete_many([key]) == 1

    def delete_many(self, keys: Sequence[str]) -> int:
        """Delete many keys.

        Args:
            keys: Cache keys

        Returns:
            Number of keys deleted
        """
        definition = self._require_definition()
        keys = list(keys)
        if not keys or not self.is_ready():
            return 0

        try:
            count = self._client.hdel(self._hash, *keys)
        except RedisError as e:
            self._remote_error("delete", e)
            return 0
        self._stats.deletes += count

        if definition.uses_ttl:
            try:
                self._ttl_index.remove(keys)
            except RedisError as e:
                self._remote_error("TTL index removal", e)
        return count

    def purge(self) -> bool:
        """Drop every entry, and the TTL index when there is one.

        Returns:
            True if successful, including when already empty
        """
        definition = self._require_definition()
        if not self.is_ready():
            return False
        try:
            if definition.uses_ttl:
                self._ttl_index.drop()
            self._client.delete(self._hash)
            return True
        except RedisError as e:
            self._remote_error("purge", e)
            return False

    # TTL

    def expire_ttl(self) -> ExpiryResult:
        """Purge entries older than the definition's TTL.

        Meant to be run periodically by a scheduler. Works through the
        index in batches of TTL_EXPIRE_BATCH, oldest first, until a batch
        comes back short.

        Returns:
            ExpiryResult

        Raises:
            TTLNotSupportedError: If the definition has no TTL
        """
        definition = self._require_definition()
        if not definition.uses_ttl:
            raise TTLNotSupportedError(definition.id)

        result = ExpiryResult()
        if not self.is_ready():
            return result

        cutoff = self._clock.time() - definition.ttl
        started = time.time()
        memory_before = self.store_total_size()

        while True:
            # Stop on any failure: members left in the index would be refetched.
            try:
                keys = self._ttl_index.stale(cutoff, self.TTL_EXPIRE_BATCH)
                if keys:
                    self._stats.deletes += self._client.hdel(self._hash, *keys)
                    self._ttl_index.remove(keys)
            except RedisError as e:
                self._remote_error("TTL expiry", e)
                break
            result.keys += len(keys)
            result.batches += 1
            logger.debug(f"Expired batch {result.batches} of {len(keys)} keys from {self.name}")
            if len(keys) != self.TTL_EXPIRE_BATCH:
                break

        memory_after = self.store_total_size()
        result.time = time.time() - started
        if memory_before is not None and memory_after is not None:
            result.memory = memory_before - memory_after
        return result

    # Locks

    def acquire_lock(self, key: str, owner: str) -> bool:
        return self._locks.acquire(key, owner)

    def check_lock_state(self, key: str, owner: str) -> LockState:
        return self._locks.check(key, owner)

    def release_lock(self, key: str, owner: str) -> bool:
        return self._locks.release(key, owner)

    def shutdown_release_locks(self) -> None:
        self._locks.shutdown_release_locks()

    @contextmanager
    def lock(self, key: str, owner: str) -> Iterator[None]:
        """Hold a lock for the duration of a block.

        Raises:
            LockNotAcquiredError: If the lock was not acquired in time
        """
        with self._locks.hold(key, owner):
            yield

    @property
    def held_locks(self) -> Dict[str, str]:
        return self._locks.held_locks

    # Sizes

    @property
    def last_io_bytes(self) -> int:
        return self.get_last_io_bytes()

    def get_last_io_bytes(self) -> int:
        """Get bytes read or written by the last call.

        Only tracked with compression: without it values are not
        serialized to a known size here, and measuring would cost an
        extra serialization.

        Returns:
            Byte count, or IO_BYTES_NOT_SUPPORTED
        """
        if self._codec.compression_enabled:
            return self._last_io_bytes
        return IO_BYTES_NOT_SUPPORTED

    def estimate_stored_size(self, key: str, value: Any) -> int:
        if not self._codec.compression_enabled:
            return super().estimate_stored_size(key, value)
        last_io_bytes = self._codec.last_io_bytes
        try:
            size = len(key.encode("utf-8")) + payload_size(self._codec.encode(value))
        except CodecError:
            return super().estimate_stored_size(key, value)
        finally:
            self._codec.last_io_bytes = last_io_bytes
        return size

    def store_total_size(self) -> Optional[int]:
        """Get Redis reported memory usage.

        Returns:
            Bytes used by Redis, or None if unknown
        """
        return self._connection.used_memory()

    # Testing

    @classmethod
    def ready_to_be_used_for_testing(cls) -> bool:
        return bool(os.environ.get(TEST_SERVERS_ENV))

    @classmethod
    def unit_test_configuration(cls) -> Dict[str, Any]:
        """Get the configuration for tests against a real server.

        Raises:
            CodingError: If no test server is configured
        """
        if not cls.ready_to_be_used_for_testing():
            raise CodingError(
                f"{TEST_SERVERS_ENV} not configured, unable to create test configuration"
            )
        return {
            "server": os.environ[TEST_SERVERS_ENV].replace(",", "\n"),
            "prefix": os.environ.get(TEST_PREFIX_ENV, "roadstore_test_"),
            "encryption": os.environ.get(TEST_ENCRYPT_ENV, ""),
        }

    @classmethod
    def initialise_test_instance(
        cls,
        definition: CacheDefinition,
        ttl: Optional[int] = None,
    ) -> Optional["RedisStore"]:
        """Create an initialised store against the test server.

        Args:
            definition: Cache definition
            ttl: Override the definition's TTL

        Returns:
            RedisStore, or None if no test server is configured
        """
        if not cls.ready_to_be_used_for_testing():
            return None
        if ttl is not None:
            definition = dataclasses.replace(definition, ttl=ttl)
        store = cls("Redis test", cls.unit_test_configuration())
        store.initialise(definition)
        return store

    def __repr__(self) -> str:
        return f"RedisStore(name={self.name}, servers={self._connection.describe()}, ready={self.is_ready()})"


def _iter_pairs(pairs: Pairs) -> Iterator[Tuple[str, Any]]:
    if isinstance(pairs, Mapping):
        yield from pairs.items()
        return
    for pair in pairs:
        if isinstance(pair, Mapping):
            yield pair["key"], pair["value"]
        else:
            key, value = pair
            yield key, value


__all__ = ["RedisStore"]
