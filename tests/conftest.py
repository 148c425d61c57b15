"""Shared fixtures for RoadStore tests.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import threading
import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import DataError

from roadstore_core.clock import Clock
from roadstore_core.definition import CacheDefinition
from roadstore_core.store import connection
from roadstore_core.store.redis import RedisStore


def _b(value):
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (int, float)):
        return repr(value).encode("utf-8")
    raise DataError(f"Invalid input of type: '{type(value).__name__}'")


class InMemoryRedis:
    """Thread-safe stand-in for the subset of redis.Redis the store uses.

    Replies use bytes like a client created without decode_responses.
    Set `down` to make every command raise a connection error.
    """

    BASE_MEMORY = 1_000_000

    def __init__(self):
        self._hashes = {}
        self._zsets = {}
        self._strings = {}
        self._lock = threading.Lock()
        self.down = False
        self.closed = False
        self.commands = []

    def _call(self, name):
        if self.down:
            raise RedisConnectionError("Connection refused")
        self.commands.append(name)

    def _live_string(self, key):
        item = self._strings.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._strings[key]
            return None
        return value

    def ping(self):
        self._call("PING")
        return True

    def info(self, section=None):
        self._call("INFO")
        with self._lock:
            used = sum(
                len(k) + len(v)
                for fields in self._hashes.values()
                for k, v in fields.items()
            )
            used += sum(len(m) + 8 for zset in self._zsets.values() for m in zset)
        return {"used_memory": self.BASE_MEMORY + used}

    def close(self):
        self.closed = True

    # Hashes

    def hget(self, name, key):
        self._call("HGET")
        with self._lock:
            return self._hashes.get(_b(name), {}).get(_b(key))

    def hmget(self, name, keys, *args):
        self._call("HMGET")
        with self._lock:
            fields = self._hashes.get(_b(name), {})
            return [fields.get(_b(k)) for k in list(keys) + list(args)]

    def hset(self, name, key=None, value=None, mapping=None, items=None):
        self._call("HSET")
        pairs = dict(mapping or {})
        if key is not None:
            pairs[key] = value
        encoded = {_b(k): _b(v) for k, v in pairs.items()}
        with self._lock:
            fields = self._hashes.setdefault(_b(name), {})
            added = sum(1 for k in encoded if k not in fields)
            fields.update(encoded)
            return added

    def hdel(self, name, *keys):
        self._call("HDEL")
        with self._lock:
            fields = self._hashes.get(_b(name), {})
            removed = 0
            for k in keys:
                if fields.pop(_b(k), None) is not None:
                    removed += 1
            if not fields:
                self._hashes.pop(_b(name), None)
            return removed

    def hexists(self, name, key):
        self._call("HEXISTS")
        with self._lock:
            return _b(key) in self._hashes.get(_b(name), {})

    def hkeys(self, name):
        self._call("HKEYS")
        with self._lock:
            return list(self._hashes.get(_b(name), {}))

    # Sorted sets

    def zadd(self, name, mapping):
        self._call("ZADD")
        with self._lock:
            zset = self._zsets.setdefault(_b(name), {})
            added = sum(1 for m in mapping if _b(m) not in zset)
            for member, score in mapping.items():
                zset[_b(member)] = float(score)
            return added

    def zrangebyscore(self, name, min, max, start=None, num=None):
        self._call("ZRANGEBYSCORE")
        with self._lock:
            zset = self._zsets.get(_b(name), {})
            members = sorted(
                (score, member)
                for member, score in zset.items()
                if float(min) <= score <= float(max)
            )
        result = [member for _, member in members]
        if start is not None and num is not None:
            result = result[start:start + num]
        return result

    def zrem(self, name, *values):
        self._call("ZREM")
        with self._lock:
            zset = self._zsets.get(_b(name), {})
            removed = 0
            for v in values:
                if zset.pop(_b(v), None) is not None:
                    removed += 1
            if not zset:
                self._zsets.pop(_b(name), None)
            return removed

    def zcard(self, name):
        with self._lock:
            return len(self._zsets.get(_b(name), {}))

    # Keys and strings

    def delete(self, *names):
        self._call("DEL")
        with self._lock:
            removed = 0
            for name in names:
                key = _b(name)
                for space in (self._hashes, self._zsets, self._strings):
                    if space.pop(key, None) is not None:
                        removed += 1
            return removed

    def exists(self, name):
        with self._lock:
            key = _b(name)
            return int(
                key in self._hashes
                or key in self._zsets
                or self._live_string(key) is not None
            )

    def set(self, name, value, ex=None, px=None, nx=False):
        self._call("SET")
        with self._lock:
            key = _b(name)
            if nx and self._live_string(key) is not None:
                return None
            expires_at = None
            if px is not None:
                expires_at = time.monotonic() + px / 1000
            elif ex is not None:
                expires_at = time.monotonic() + ex
            self._strings[key] = (_b(value), expires_at)
            return True

    def get(self, name):
        self._call("GET")
        with self._lock:
            return self._live_string(_b(name))


class ClientFactory:
    """Replaces redis.Redis, recording constructor arguments."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self.client


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def redis_factory(fake_redis, monkeypatch):
    factory = ClientFactory(fake_redis)
    monkeypatch.setattr(connection, "Redis", factory)
    return factory


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def make_store(redis_factory, clock):
    """Build initialised stores sharing the in-memory server."""
    stores = []

    def factory(ttl=0, definition_id="core/test", name="test", **configuration):
        configuration.setdefault("server", "localhost:6379")
        store = RedisStore(name, configuration, clock=clock)
        store.initialise(CacheDefinition(definition_id, ttl=ttl))
        stores.append(store)
        return store

    yield factory

    for store in stores:
        store.instance_deleted()


@pytest.fixture
def store(make_store):
    return make_store()


@pytest.fixture
def ttl_store(make_store):
    return make_store(ttl=100)


@pytest.fixture
def cluster_factory(fake_redis, monkeypatch):
    factory = ClientFactory(fake_redis)
    monkeypatch.setattr(connection, "RedisCluster", factory)
    return factory
