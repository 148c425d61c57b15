"""RoadStore Config - Redis Store Configuration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from roadstore_core.protocol.compressor import CompressorType
from roadstore_core.protocol.serializer import SerializerType

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6379
CONNECTION_TIMEOUT = 3

_TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass
class RedisConfig:
    """Redis store configuration.

    Attributes:
        server: One or more newline-separated addresses
        prefix: Prefix applied to every remote key
        password: Server password
        serializer: Serializer (SerializerType, name or id)
        compressor: Compressor (CompressorType, name or id)
        connectiontimeout: Seconds to wait for a connection or response
        lockwait: Seconds to keep trying to acquire a lock
        locktimeout: Seconds before an unreleased lock expires
        encryption: Connect over TLS
        cafile: CA bundle used to verify the server certificate
        clustermode: Treat the servers as a Redis Cluster
        lock_fast_delay_ms: Poll delay range while a lock wait is young
        lock_slow_delay_ms: Poll delay range once the wait gets long
        lock_fast_period: Seconds of fast polling before slowing down
    """

    server: str = ""
    prefix: str = ""
    password: Optional[str] = None
    serializer: Any = SerializerType.GENERIC
    compressor: Any = CompressorType.NONE
    connectiontimeout: float = CONNECTION_TIMEOUT
    lockwait: float = 60
    locktimeout: float = 600
    encryption: bool = False
    cafile: Optional[str] = None
    clustermode: bool = False
    lock_fast_delay_ms: Tuple[int, int] = (100, 110)
    lock_slow_delay_ms: Tuple[int, int] = (1000, 1100)
    lock_fast_period: float = 5.0

    @classmethod
    def from_dict(cls, configuration: Mapping[str, Any]) -> "RedisConfig":
        """Build a config from a configuration mapping.

        Unrecognized keys are ignored; empty values keep their defaults.

        Args:
            configuration: Stored configuration

        Returns:
            RedisConfig instance
        """
        config = cls()
        known = {f.name for f in fields(cls)}

        for key, value in configuration.items():
            if key not in known:
                logger.debug(f"Ignoring unknown Redis store option: {key}")
                continue
            if value is None or value == "":
                continue
            setattr(config, key, value)

        config.server = str(config.server)
        config.prefix = str(config.prefix)
        config.password = str(config.password) if config.password else None
        config.connectiontimeout = float(config.connectiontimeout)
        config.lockwait = float(config.lockwait)
        config.locktimeout = float(config.locktimeout)
        config.lock_fast_period = float(config.lock_fast_period)
        config.lock_fast_delay_ms = _as_range(config.lock_fast_delay_ms)
        config.lock_slow_delay_ms = _as_range(config.lock_slow_delay_ms)
        config.encryption = _as_bool(config.encryption)
        config.clustermode = _as_bool(config.clustermode)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain configuration mapping."""
        data = asdict(self)
        for key in ("serializer", "compressor"):
            if hasattr(data[key], "name"):
                data[key] = data[key].name.lower()
        return data

    @property
    def has_server(self) -> bool:
        return bool(self.server.strip())


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _as_range(value: Any) -> Tuple[int, int]:
    low, high = value
    low, high = int(low), int(high)
    if high < low:
        raise ValueError(f"Invalid delay range: {value!r}")
    return low, high


__all__ = ["RedisConfig", "DEFAULT_PORT", "CONNECTION_TIMEOUT"]
