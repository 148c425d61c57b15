"""RoadStore Compressor - Payload Compression.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import gzip
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

import zstandard

from roadstore_core.protocol.serializer import parse_choice


class CompressorType(Enum):
    """Compressors a store can be configured with."""

    NONE = 0
    GZIP = 1
    ZSTD = 2

    @classmethod
    def parse(cls, value: Any) -> Optional["CompressorType"]:
        """Resolve a configured compressor.

        Args:
            value: Enum member, name or integer id

        Returns:
            CompressorType or None if unknown
        """
        return parse_choice(cls, value, {"zstandard": "zstd", "deflate": "gzip"})


class Compressor(ABC):
    """Abstract byte compressor."""

    @abstractmethod
    def compress(self, data: bytes) -> bytes:
        pass

    @abstractmethod
    def decompress(self, data: bytes) -> bytes:
        pass


class NullCompressor(Compressor):
    """Leaves payloads untouched."""

    def compress(self, data: bytes) -> bytes:
        return data

    def decompress(self, data: bytes) -> bytes:
        return data


class GzipCompressor(Compressor):
    """Gzip (deflate) compression."""

    def __init__(self, level: int = 6):
        self.level = level

    def compress(self, data: bytes) -> bytes:
        return gzip.compress(data, compresslevel=self.level)

    def decompress(self, data: bytes) -> bytes:
        return gzip.decompress(data)


class ZstdCompressor(Compressor):
    """Zstandard compression.

    Frames carry their content size, so one-shot decompression works.
    """

    def __init__(self, level: int = 3):
        self.level = level
        self._compressor = zstandard.ZstdCompressor(level=level)
        self._decompressor = zstandard.ZstdDecompressor()

    def compress(self, data: bytes) -> bytes:
        return self._compressor.compress(data)

    def decompress(self, data: bytes) -> bytes:
        return self._decompressor.decompress(data)


_COMPRESSORS: Dict[CompressorType, Compressor] = {
    CompressorType.NONE: NullCompressor(),
    CompressorType.GZIP: GzipCompressor(),
    CompressorType.ZSTD: ZstdCompressor(),
}


def get_compressor(compressor_type: CompressorType) -> Compressor:
    """Get the compressor implementing a type.

    Args:
        compressor_type: Compressor type

    Returns:
        Compressor instance
    """
    return _COMPRESSORS[compressor_type]


__all__ = [
    "Compressor",
    "CompressorType",
    "NullCompressor",
    "GzipCompressor",
    "ZstdCompressor",
    "get_compressor",
]
