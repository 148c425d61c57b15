"""RoadStore TTL - Sorted TTL Index and Expiry Results.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Native per-key expiry is not used: each cache definition lives in a single
Redis hash so that purging is one DEL, and hash fields cannot expire on
their own. Definitions with a TTL keep a side sorted set scored by write
time, and a periodic expiry pass deletes everything older than the TTL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from roadstore_core.store.connection import RedisConnection

TTL_SUFFIX = "_ttl"


@dataclass
class ExpiryResult:
    """Outcome of one expiry pass.

    Attributes:
        keys: Number of keys purged
        batches: Number of batches fetched
        time: Seconds taken
        memory: Approximate bytes reclaimed, None if unknown
    """

    keys: int = 0
    batches: int = 0
    time: float = 0.0
    memory: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting unknown memory."""
        result: Dict[str, Any] = {
            "keys": self.keys,
            "batches": self.batches,
            "time": self.time,
        }
        if self.memory is not None:
            result["memory"] = self.memory
        return result


class TTLIndex:
    """Sorted set of key names scored by their last write time.

    Remote errors propagate to the caller, which decides how to absorb them.
    """

    def __init__(self, connection: RedisConnection, hash_key: str):
        """Initialize index.

        Args:
            connection: Redis connection
            hash_key: Unprefixed name of the data hash
        """
        self._connection = connection
        self.key = connection.make_key(hash_key + TTL_SUFFIX)

    @property
    def _client(self) -> Any:
        return self._connection.client

    def touch(self, keys: Sequence[str], score: int) -> None:
        """Upsert keys with a score.

        Args:
            keys: Key names
            score: Write time
        """
        if keys:
            self._client.zadd(self.key, {key: score for key in keys})

    def remove(self, keys: Sequence[str]) -> None:
        if keys:
            self._client.zrem(self.key, *keys)

    def drop(self) -> None:
        self._client.delete(self.key)

    def stale(self, cutoff: int, limit: int) -> List[str]:
        """Get the oldest keys written at or before a cutoff.

        Args:
            cutoff: Latest write time to include
            limit: Maximum keys to return

        Returns:
            Key names, oldest first
        """
        members = self._client.zrangebyscore(self.key, 0, cutoff, start=0, num=limit)
        return [m.decode("utf-8") if isinstance(m, bytes) else m for m in members]


__all__ = ["TTLIndex", "ExpiryResult", "TTL_SUFFIX"]
