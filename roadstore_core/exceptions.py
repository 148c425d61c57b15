"""RoadStore Exceptions - Error Taxonomy.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

Remote failures never surface as exceptions; they are logged and turned
into conservative results by the store. Only caller mistakes raise.
"""

from __future__ import annotations


class RoadStoreError(Exception):
    """Base class for all RoadStore errors."""


class CodingError(RoadStoreError):
    """A contract violation by the calling code.

    Not retried and not recoverable: the caller has a bug.
    """


class TTLNotSupportedError(CodingError):
    """TTL expiry was requested for a definition without a TTL."""

    def __init__(self, definition_id: str):
        super().__init__(f"Cache definition {definition_id} does not use TTL")
        self.definition_id = definition_id


class StoreNotInitialisedError(CodingError):
    """A data operation was attempted before initialise()."""

    def __init__(self, name: str):
        super().__init__(f"Store {name} has not been initialised with a definition")
        self.name = name


class CodecError(RoadStoreError):
    """A value could not be encoded, or a stored payload could not be decoded.

    Raised by the codec pipeline; the store reports it as a failed write
    or a miss.
    """


class LockNotAcquiredError(RoadStoreError):
    """A lock could not be acquired within the configured wait."""

    def __init__(self, key: str, waited: float):
        super().__init__(f"Could not acquire lock {key} within {waited}s")
        self.key = key
        self.waited = waited


__all__ = [
    "RoadStoreError",
    "CodingError",
    "TTLNotSupportedError",
    "StoreNotInitialisedError",
    "CodecError",
    "LockNotAcquiredError",
]
