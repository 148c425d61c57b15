"""RoadStore Connection - Redis Node and Cluster Connections.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from redis import Redis
from redis.cluster import ClusterNode, RedisCluster
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisClusterException, RedisError

from roadstore_core.store.config import DEFAULT_PORT, RedisConfig

logger = logging.getLogger(__name__)

UNIX_SCHEME = "unix://"
TLS_SCHEMES = ("tls://", "rediss://")
PLAIN_SCHEME = "redis://"


@dataclass(frozen=True)
class ServerAddress:
    """A parsed server address.

    Attributes:
        host: Hostname, IP, or socket path for unix sockets
        port: TCP port, 0 for unix sockets
        tls: Whether to connect over TLS
    """

    host: str
    port: int = DEFAULT_PORT
    tls: bool = False

    @property
    def is_unix_socket(self) -> bool:
        return self.port == 0

    def __str__(self) -> str:
        if self.is_unix_socket:
            return self.host
        scheme = "tls://" if self.tls else ""
        return f"{scheme}{self.host}:{self.port}"


def parse_address(text: str, encryption: bool = False) -> ServerAddress:
    """Parse one server address.

    Args:
        text: "host", "host:port", "tls://host:port", "/path" or "unix:///path"
        encryption: Whether TLS was requested for the store

    Returns:
        ServerAddress

    Raises:
        ValueError: If the port is not a number
    """
    text = text.strip().lower()

    if text.startswith(UNIX_SCHEME):
        return ServerAddress(host=text[len(UNIX_SCHEME):], port=0)
    if text.startswith("/"):
        return ServerAddress(host=text, port=0)

    tls = encryption
    for scheme in TLS_SCHEMES:
        if text.startswith(scheme):
            text = text[len(scheme):]
            tls = True
    if text.startswith(PLAIN_SCHEME):
        text = text[len(PLAIN_SCHEME):]

    host, port = text, DEFAULT_PORT
    if ":" in text:
        host, _, port_text = text.rpartition(":")
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"Invalid port in Redis server address: {text}")

    return ServerAddress(host=host, port=port, tls=tls)


def parse_servers(
    server: str,
    clustermode: bool = False,
    encryption: bool = False,
) -> List[ServerAddress]:
    """Parse newline-separated server addresses.

    Blank lines are skipped. Outside cluster mode only the first address
    is used.

    Args:
        server: Configured server list
        clustermode: Whether every address is a cluster seed
        encryption: Whether TLS was requested

    Returns:
        List of addresses
    """
    addresses = []
    for line in server.split("\n"):
        if not line.strip():
            continue
        addresses.append(parse_address(line, encryption))
        if not clustermode:
            break
    return addresses


def tls_options(config: RedisConfig, enabled: Optional[bool] = None) -> Dict[str, Any]:
    """Build redis-py TLS keyword arguments.

    Without a CA file the peer certificate and hostname are not verified.

    Args:
        config: Store configuration
        enabled: Override for config.encryption

    Returns:
        Keyword arguments for the client
    """
    if not (config.encryption if enabled is None else enabled):
        return {}
    if config.cafile:
        return {
            "ssl": True,
            "ssl_ca_certs": config.cafile,
            "ssl_cert_reqs": "required",
        }
    return {
        "ssl": True,
        "ssl_cert_reqs": "none",
        "ssl_check_hostname": False,
    }


class RedisConnection:
    """A Redis client handle with its readiness and key prefix.

    redis-py has no connection-level key prefix, so every remote key name
    goes through make_key().
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        ready: bool = False,
        prefix: str = "",
        servers: Optional[List[ServerAddress]] = None,
    ):
        self.client = client
        self.ready = ready
        self.prefix = prefix
        self.servers = servers or []

    def make_key(self, name: str) -> str:
        """Make prefixed Redis key.

        Args:
            name: Logical key name

        Returns:
            Prefixed key
        """
        return f"{self.prefix}{name}"

    def ping(self) -> bool:
        """Check the server responds."""
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def used_memory(self) -> Optional[int]:
        """Get memory reported by the server.

        Cluster replies carry one section per node; those are summed.

        Returns:
            Bytes used, or None if unknown
        """
        if self.client is None or not self.ready:
            return None
        try:
            details = self.client.info("memory")
        except RedisError:
            return None

        if not details:
            return None
        if "used_memory" in details:
            return int(details["used_memory"]) or None

        total = 0
        for node_details in details.values():
            if isinstance(node_details, dict):
                total += int(node_details.get("used_memory", 0))
        return total or None

    def close(self) -> None:
        """Close the client and drop its connections."""
        if self.client is not None:
            try:
                self.client.close()
            except RedisError as e:
                logger.error(f"Redis close error: {e}")
        self.client = None
        self.ready = False

    def describe(self) -> str:
        return ",".join(str(s) for s in self.servers) or "(none)"

    def __repr__(self) -> str:
        return f"RedisConnection(servers={self.describe()}, ready={self.ready})"


def _new_redis(address: ServerAddress, config: RedisConfig) -> Redis:
    options: Dict[str, Any] = {
        "password": config.password,
        "socket_timeout": config.connectiontimeout,
        "socket_connect_timeout": config.connectiontimeout,
    }
    if address.is_unix_socket:
        options["unix_socket_path"] = address.host
    else:
        options["host"] = address.host
        options["port"] = address.port
        if address.tls:
            # A single node takes TLS settings on its own connection.
            options.update(tls_options(config, enabled=True))
    return Redis(**options)


def _new_cluster(addresses: List[ServerAddress], config: RedisConfig) -> RedisCluster:
    nodes = [ClusterNode(a.host, a.port) for a in addresses]
    return RedisCluster(
        startup_nodes=nodes,
        password=config.password,
        socket_timeout=config.connectiontimeout,
        socket_connect_timeout=config.connectiontimeout,
        **tls_options(config),
    )


def connect(config: RedisConfig) -> RedisConnection:
    """Connect to the configured server or cluster.

    Never raises: failures are logged and produce a connection that is
    not ready.

    Args:
        config: Store configuration

    Returns:
        RedisConnection
    """
    connection = RedisConnection(prefix=config.prefix)

    try:
        connection.servers = parse_servers(
            config.server, config.clustermode, config.encryption
        )
        if not connection.servers:
            raise ValueError("no server address configured")

        if config.clustermode:
            connection.client = _new_cluster(connection.servers, config)
        else:
            connection.client = _new_redis(connection.servers[0], config)

        # redis-py connects lazily and a TLS handshake may not complete
        # until data is exchanged, so force a round trip now.
        if not connection.client.ping():
            raise RedisConnectionError("Ping failed")

        connection.ready = True
        logger.info(f"Connected to Redis at {connection.describe()}")

    except (RedisError, RedisClusterException, ValueError) as e:
        logger.error(
            f"Failed to connect to Redis at {connection.describe()}, "
            f"the error returned was: {e}"
        )
        connection.ready = False

    return connection


__all__ = [
    "RedisConnection",
    "ServerAddress",
    "connect",
    "parse_address",
    "parse_servers",
    "tls_options",
]
