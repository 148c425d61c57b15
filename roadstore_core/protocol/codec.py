"""RoadStore Codec - Serialize/Compress Pipeline.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import pickle
from typing import Any, Optional

import zstandard
from msgpack.exceptions import UnpackException

from roadstore_core.exceptions import CodecError
from roadstore_core.protocol.compressor import CompressorType, get_compressor
from roadstore_core.protocol.serializer import SerializerType, get_serializer

logger = logging.getLogger(__name__)

# Reported when byte counts would need an extra serialization pass.
IO_BYTES_NOT_SUPPORTED = -1

# Raised by serializers for values they cannot represent.
ENCODE_ERRORS = (TypeError, ValueError, OverflowError, AttributeError, pickle.PicklingError)

# Raised by decompressors and deserializers for foreign or corrupt payloads.
# gzip.BadGzipFile is an OSError; msgpack's ExtraData is an UnpackException.
DECODE_ERRORS = (
    pickle.UnpicklingError,
    UnpackException,
    zstandard.ZstdError,
    OSError,
    EOFError,
    ValueError,
    TypeError,
    AttributeError,
    ImportError,
    IndexError,
)


def payload_size(data: Any) -> int:
    """Get the byte length of a payload, 0 if it is not bytes."""
    return len(data) if isinstance(data, (bytes, bytearray)) else 0


def is_bytes_like(data: Any) -> bool:
    return isinstance(data, (bytes, bytearray, memoryview))


class CodecPipeline:
    """Turns values into transportable bytes and back.

    Writes serialize first and compress second; reads undo the steps in
    reverse order. Unknown serializer or compressor settings are logged
    once and degrade to passthrough rather than failing requests.

    Example:
        codec = CodecPipeline("generic", "zstd")
        payload = codec.encode({"a": 1})
        codec.decode(payload)  # {"a": 1}
    """

    def __init__(
        self,
        serializer: Any = SerializerType.GENERIC,
        compressor: Any = CompressorType.NONE,
    ):
        """Initialize codec.

        Args:
            serializer: Configured serializer (enum, name or id)
            compressor: Configured compressor (enum, name or id)
        """
        self.serializer_type: Optional[SerializerType] = SerializerType.parse(serializer)
        self.compressor_type: Optional[CompressorType] = CompressorType.parse(compressor)
        self.last_io_bytes = 0

        if self.serializer_type is None:
            logger.warning(f"Invalid serializer: {serializer!r}, values will pass through")
        if self.compressor_type is None:
            logger.warning(f"Invalid compressor: {compressor!r}, values will not be compressed")

    @property
    def compression_enabled(self) -> bool:
        """Whether a known compressor other than NONE was configured."""
        return self.compressor_type not in (None, CompressorType.NONE)

    def serialize(self, value: Any) -> Any:
        if self.serializer_type is None:
            return value
        return get_serializer(self.serializer_type).serialize(value)

    def deserialize(self, data: Any) -> Any:
        if self.serializer_type is None:
            return data
        return get_serializer(self.serializer_type).deserialize(data)

    def encode(self, value: Any) -> Any:
        """Serialize then compress a value.

        Values passed through by an unknown serializer are only compressed
        when they are already bytes.

        Args:
            value: Value to encode

        Returns:
            Payload to send to the server

        Raises:
            CodecError: If the serializer cannot represent the value
        """
        try:
            data = self.serialize(value)
        except ENCODE_ERRORS as e:
            raise CodecError(f"Cannot encode {type(value).__name__} value: {e}") from e

        if self.compressor_type is not None and is_bytes_like(data):
            data = get_compressor(self.compressor_type).compress(data)
        if self.compression_enabled:
            self.last_io_bytes = payload_size(data)
        return data

    def decode(self, data: Optional[bytes]) -> Any:
        """Decompress then deserialize a payload.

        Args:
            data: Payload read from the server, None for a miss

        Returns:
            Decoded value, or None for a miss

        Raises:
            CodecError: If the payload was not written by this pipeline
        """
        if data is None:
            return None
        if self.compression_enabled:
            self.last_io_bytes = payload_size(data)
        try:
            if self.compressor_type is not None:
                data = get_compressor(self.compressor_type).decompress(data)
            return self.deserialize(data)
        except DECODE_ERRORS as e:
            raise CodecError(f"Cannot decode payload: {e}") from e

    def __repr__(self) -> str:
        serializer = self.serializer_type.name if self.serializer_type else "INVALID"
        compressor = self.compressor_type.name if self.compressor_type else "INVALID"
        return f"CodecPipeline(serializer={serializer}, compressor={compressor})"


__all__ = ["CodecPipeline", "IO_BYTES_NOT_SUPPORTED", "payload_size", "is_bytes_like"]
