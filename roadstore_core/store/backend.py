"""RoadStore Storage Backend - Cache Store Capability Interfaces.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A store implements CacheStore plus whichever capabilities it offers.
Callers that need one capability depend only on that interface:

    KeyAwareStore      has / has_any / has_all
    SearchableStore    find_all / find_by_prefix
    LockableStore      acquire_lock / check_lock_state / release_lock
    ConfigurableStore  configuration <-> settings conversion
"""

from __future__ import annotations

import logging
import pickle
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Flag
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from roadstore_core.definition import CacheDefinition, StoreMode
from roadstore_core.lock.manager import LockState
from roadstore_core.protocol.codec import IO_BYTES_NOT_SUPPORTED

logger = logging.getLogger(__name__)


class StoreFeature(Flag):
    """Features a store type can advertise."""

    NONE = 0
    SUPPORTS_NATIVE_TTL = 1
    SUPPORTS_DATA_GUARANTEE = 2
    DEREFERENCES_OBJECTS = 4
    IS_SEARCHABLE = 8


@dataclass
class StorageStats:
    """Store statistics.

    Attributes:
        reads: Number of read operations
        writes: Number of write operations
        deletes: Number of delete operations
        errors: Number of remote errors absorbed
    """

    reads: int = 0
    writes: int = 0
    deletes: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class CacheStore(ABC):
    """Abstract key-value store behind one cache definition.

    Reads return None on a miss. Remote failures are absorbed and
    reported through return values, never raised.
    """

    def __init__(self, name: str):
        """Initialize store.

        Args:
            name: Store instance name
        """
        self.name = name
        self.definition: Optional[CacheDefinition] = None
        self._stats = StorageStats()

    @classmethod
    def get_supported_features(cls, configuration: Optional[Mapping[str, Any]] = None) -> StoreFeature:
        return StoreFeature.NONE

    @classmethod
    def get_supported_modes(cls, configuration: Optional[Mapping[str, Any]] = None) -> List[StoreMode]:
        return [StoreMode.APPLICATION]

    @classmethod
    def is_supported_mode(cls, mode: StoreMode) -> bool:
        return mode in cls.get_supported_modes()

    @classmethod
    def are_requirements_met(cls) -> bool:
        return True

    def my_name(self) -> str:
        return self.name

    def initialise(self, definition: CacheDefinition) -> bool:
        """Bind the store to a cache definition.

        Args:
            definition: Cache definition

        Returns:
            True once initialised
        """
        self.definition = definition
        return True

    def is_initialised(self) -> bool:
        return self.definition is not None

    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @abstractmethod
    def get(self, key: str) -> Any:
        """Get value by key.

        Args:
            key: Cache key

        Returns:
            Value or None
        """
        pass

    @abstractmethod
    def get_many(self, keys: Sequence[str]) -> List[Any]:
        """Get values for many keys.

        Args:
            keys: Cache keys

        Returns:
            Values in input order, None for misses
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        pass

    @abstractmethod
    def set_many(self, pairs: Sequence[Tuple[str, Any]]) -> int:
        """Store many values.

        Args:
            pairs: (key, value) pairs

        Returns:
            Number stored
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    def delete_many(self, keys: Sequence[str]) -> int:
        pass

    @abstractmethod
    def purge(self) -> bool:
        """Remove every entry of this store."""
        pass

    def instance_deleted(self) -> None:
        """Clean up after the store instance is discarded."""
        pass

    def get_last_io_bytes(self) -> int:
        """Get bytes read or written by the last call.

        Returns:
            Byte count, or IO_BYTES_NOT_SUPPORTED
        """
        return IO_BYTES_NOT_SUPPORTED

    def estimate_stored_size(self, key: str, value: Any) -> int:
        """Estimate bytes used by storing a value.

        Args:
            key: Cache key
            value: Value

        Returns:
            Approximate size in bytes
        """
        return len(pickle.dumps(key)) + len(pickle.dumps(value))

    def store_total_size(self) -> Optional[int]:
        """Get total bytes used by the store, None if unknown."""
        return None

    def get_stats(self) -> StorageStats:
        """Get storage statistics.

        Returns:
            StorageStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StorageStats()


class KeyAwareStore(ABC):
    """Stores that can answer existence questions."""

    @abstractmethod
    def has(self, key: str) -> bool:
        pass

    def has_any(self, keys: Sequence[str]) -> bool:
        """Check whether any key exists.

        Checks keys one at a time, in order, stopping at the first hit.

        Args:
            keys: Keys to check

        Returns:
            True if at least one key exists
        """
        for key in keys:
            if self.has(key):
                return True
        return False

    def has_all(self, keys: Sequence[str]) -> bool:
        """Check whether every key exists.

        Checks keys one at a time, in order, stopping at the first miss.

        Args:
            keys: Keys to check

        Returns:
            True if all keys exist
        """
        for key in keys:
            if not self.has(key):
                return False
        return True


class SearchableStore(ABC):
    """Stores that can enumerate their keys."""

    @abstractmethod
    def find_all(self) -> List[str]:
        pass

    def find_by_prefix(self, prefix: str) -> List[str]:
        """Find keys starting with a prefix.

        Args:
            prefix: Key prefix

        Returns:
            Matching keys
        """
        return [key for key in self.find_all() if key.startswith(prefix)]


class LockableStore(ABC):
    """Stores that offer cross-process locks."""

    @abstractmethod
    def acquire_lock(self, key: str, owner: str) -> bool:
        pass

    @abstractmethod
    def check_lock_state(self, key: str, owner: str) -> LockState:
        pass

    @abstractmethod
    def release_lock(self, key: str, owner: str) -> bool:
        pass


class ConfigurableStore(ABC):
    """Stores whose configuration is edited as a flat set of settings."""

    @classmethod
    @abstractmethod
    def config_get_configuration_array(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Build a stored configuration from submitted settings."""
        pass

    @classmethod
    @abstractmethod
    def config_get_form_data(cls, configuration: Mapping[str, Any]) -> Dict[str, Any]:
        """Build editable settings from a stored configuration."""
        pass


__all__ = [
    "CacheStore",
    "KeyAwareStore",
    "SearchableStore",
    "LockableStore",
    "ConfigurableStore",
    "LockState",
    "StoreFeature",
    "StorageStats",
]
