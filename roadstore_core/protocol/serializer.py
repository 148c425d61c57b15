"""RoadStore Serializer - Value Serialization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

import msgpack


class SerializerType(Enum):
    """Serializers a store can be configured with.

    Values match the integer ids used in stored configurations.
    """

    NONE = 0      # Passthrough of scalar values
    GENERIC = 1   # Any Python object (pickle)
    COMPACT = 2   # Compact binary (MessagePack)

    @classmethod
    def parse(cls, value: Any) -> Optional["SerializerType"]:
        """Resolve a configured serializer.

        Args:
            value: Enum member, name, alias or integer id

        Returns:
            SerializerType or None if unknown
        """
        return parse_choice(cls, value, _SERIALIZER_ALIASES)


_SERIALIZER_ALIASES = {
    "php": "generic",
    "pickle": "generic",
    "igbinary": "compact",
    "msgpack": "compact",
}


def parse_choice(enum_cls, value: Any, aliases: Dict[str, str]):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            return None
    if isinstance(value, str):
        name = value.strip().lower()
        if name.isdigit():
            return parse_choice(enum_cls, int(name), aliases)
        name = aliases.get(name, name)
        try:
            return enum_cls[name.upper()]
        except KeyError:
            return None
    return None


class Serializer(ABC):
    """Abstract serializer for cache values.

    Implementations handle different serialization formats.
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Get format name."""
        pass

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """Serialize value to bytes.

        Args:
            value: Value to serialize

        Returns:
            Serialized bytes
        """
        pass

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Deserialize bytes to value.

        Args:
            data: Serialized bytes

        Returns:
            Deserialized value
        """
        pass


class PassthroughSerializer(Serializer):
    """Sends byte strings as they are.

    Only bytes-like values are accepted, so reads always return exactly
    what was written.
    """

    @property
    def format_name(self) -> str:
        return "none"

    def serialize(self, value: Any) -> bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise TypeError(
            f"Passthrough serializer cannot store {type(value).__name__} values"
        )

    def deserialize(self, data: bytes) -> Any:
        return data


class PickleSerializer(Serializer):
    """Pickle serializer.

    Supports any Python object.
    Not safe for untrusted data.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL):
        """Initialize pickle serializer.

        Args:
            protocol: Pickle protocol version
        """
        self.protocol = protocol

    @property
    def format_name(self) -> str:
        return "generic"

    def serialize(self, value: Any) -> bytes:
        """Serialize to pickle bytes.

        Args:
            value: Value to serialize

        Returns:
            Pickle bytes
        """
        return pickle.dumps(value, protocol=self.protocol)

    def deserialize(self, data: bytes) -> Any:
        """Deserialize from pickle bytes.

        Args:
            data: Pickle bytes

        Returns:
            Deserialized value
        """
        return pickle.loads(data)


class MsgPackSerializer(Serializer):
    """MessagePack serializer.

    Compact binary format, faster than pickle.
    Limited to msgpack-compatible types; tuples read back as lists.
    """

    @property
    def format_name(self) -> str:
        return "compact"

    def serialize(self, value: Any) -> bytes:
        """Serialize to MessagePack bytes.

        Args:
            value: Value to serialize

        Returns:
            MessagePack bytes
        """
        return msgpack.packb(value, use_bin_type=True)

    def deserialize(self, data: bytes) -> Any:
        """Deserialize from MessagePack bytes.

        Args:
            data: MessagePack bytes

        Returns:
            Deserialized value
        """
        return msgpack.unpackb(data, raw=False, strict_map_key=False)


_SERIALIZERS: Dict[SerializerType, Serializer] = {
    SerializerType.NONE: PassthroughSerializer(),
    SerializerType.GENERIC: PickleSerializer(),
    SerializerType.COMPACT: MsgPackSerializer(),
}


def get_serializer(serializer_type: SerializerType) -> Serializer:
    """Get the serializer implementing a type.

    Args:
        serializer_type: Serializer type

    Returns:
        Serializer instance
    """
    return _SERIALIZERS[serializer_type]


__all__ = [
    "Serializer",
    "SerializerType",
    "PassthroughSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
    "get_serializer",
]
