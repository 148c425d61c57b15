"""RoadStore Definition - Cache Definition Descriptor.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum


class StoreMode(Enum):
    """Cache modes a store may serve."""

    APPLICATION = 1   # Shared by every request and process
    SESSION = 2       # Scoped to a user session
    REQUEST = 4       # Scoped to a single request


@dataclass(frozen=True)
class CacheDefinition:
    """Describes one logical cache handled by a store instance.

    Attributes:
        id: Definition identifier, e.g. "core/coursemodinfo"
        ttl: Time to live in seconds, 0 for none
        mode: Cache mode
    """

    id: str
    ttl: int = 0
    mode: StoreMode = StoreMode.APPLICATION

    @property
    def definition_hash(self) -> str:
        """Get the hash used as the remote container name."""
        return hashlib.md5(self.id.encode("utf-8")).hexdigest()

    @property
    def uses_ttl(self) -> bool:
        return self.ttl > 0


__all__ = ["CacheDefinition", "StoreMode"]
