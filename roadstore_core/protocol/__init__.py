"""Protocol module - Serialization, compression and codecs."""

from roadstore_core.protocol.serializer import (
    Serializer,
    SerializerType,
    PassthroughSerializer,
    PickleSerializer,
    MsgPackSerializer,
)
from roadstore_core.protocol.compressor import (
    Compressor,
    CompressorType,
    GzipCompressor,
    ZstdCompressor,
)
from roadstore_core.protocol.codec import CodecPipeline, IO_BYTES_NOT_SUPPORTED

__all__ = [
    "Serializer",
    "SerializerType",
    "PassthroughSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "Compressor",
    "CompressorType",
    "GzipCompressor",
    "ZstdCompressor",
    "CodecPipeline",
    "IO_BYTES_NOT_SUPPORTED",
]
