"""RoadStore Lock Manager - Cross-Process Locks on Redis.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import atexit
import logging
import random
import time
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Dict, Iterator, Optional, Tuple, TYPE_CHECKING

from redis.exceptions import RedisError

from roadstore_core.exceptions import LockNotAcquiredError

if TYPE_CHECKING:
    from roadstore_core.store.connection import RedisConnection

logger = logging.getLogger(__name__)


class LockState(Enum):
    """Result of checking a lock against an owner."""

    HELD_BY_OWNER = "held_by_owner"
    HELD_BY_OTHER = "held_by_other"
    UNHELD = "unheld"


class LockManager:
    """Short-lived mutual exclusion between processes sharing a Redis server.

    A lock is a plain Redis key created with SET NX and an expiry, holding
    the owner token. Only its creator can release it, and a holder that
    crashes loses it once the expiry passes.

    Locks still held when the interpreter exits are released by an atexit
    hook registered on the first successful acquire.

    Example:
        locks = LockManager(connection, lock_wait=10, lock_timeout=60)
        if locks.acquire("rebuild", "worker-1"):
            try:
                rebuild()
            finally:
                locks.release("rebuild", "worker-1")
    """

    def __init__(
        self,
        connection: RedisConnection,
        lock_wait: float = 60,
        lock_timeout: float = 600,
        fast_delay_ms: Tuple[int, int] = (100, 110),
        slow_delay_ms: Tuple[int, int] = (1000, 1100),
        fast_period: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize lock manager.

        Args:
            connection: Redis connection
            lock_wait: Seconds to keep trying before giving up
            lock_timeout: Seconds before an unreleased lock expires
            fast_delay_ms: Poll delay range during the first fast_period
            slow_delay_ms: Poll delay range afterwards
            fast_period: Seconds of fast polling
            sleep: Sleep function
            timer: Monotonic clock used for the wait budget
        """
        self._connection = connection
        self.lock_wait = lock_wait
        self.lock_timeout = lock_timeout
        self.fast_delay_ms = fast_delay_ms
        self.slow_delay_ms = slow_delay_ms
        self.fast_period = fast_period
        self._sleep = sleep
        self._timer = timer

        # None until the shutdown hook is registered
        self._current_locks: Optional[Dict[str, str]] = None

    @property
    def held_locks(self) -> Dict[str, str]:
        """Locks held by this process, key -> owner."""
        return dict(self._current_locks or {})

    def _lock_key(self, key: str) -> str:
        return self._connection.make_key(key)

    def _try_acquire(self, key: str, owner: str) -> bool:
        # PX rather than EX: a zero timeout still needs a positive expiry.
        expiry_ms = max(1, int(self.lock_timeout * 1000))
        try:
            return bool(
                self._connection.client.set(
                    self._lock_key(key), owner, nx=True, px=expiry_ms
                )
            )
        except RedisError as e:
            logger.error(f"Redis lock acquire error for {key}: {e}")
            return False

    def _next_delay(self, waited: float) -> float:
        """Pick a randomized poll delay.

        Jitter staggers the polling of competing processes. After the
        fast period a long-lived holder is assumed, so polling slows to
        roughly once a second.

        Args:
            waited: Seconds since the first attempt

        Returns:
            Delay in seconds
        """
        low, high = self.fast_delay_ms if waited < self.fast_period else self.slow_delay_ms
        return random.randint(low, high) / 1000

    def _register(self, key: str, owner: str) -> None:
        if self._current_locks is None:
            atexit.register(self.shutdown_release_locks)
            self._current_locks = {}
        self._current_locks[key] = owner

    def acquire(self, key: str, owner: str) -> bool:
        """Try to acquire a lock, polling until the wait budget runs out.

        Args:
            key: Lock name
            owner: Owner token

        Returns:
            True if the lock was acquired
        """
        if not self._connection.ready:
            return False

        owner = str(owner)
        start = self._timer()
        deadline = start + self.lock_wait

        while True:
            if self._try_acquire(key, owner):
                self._register(key, owner)
                return True

            now = self._timer()
            if now >= deadline:
                logger.debug(f"Gave up waiting for lock {key} after {now - start:.2f}s")
                return False
            self._sleep(self._next_delay(now - start))

    def check(self, key: str, owner: str) -> LockState:
        """Check who holds a lock.

        A remote failure reports the lock as unheld.

        Args:
            key: Lock name
            owner: Owner token to compare

        Returns:
            LockState
        """
        if not self._connection.ready:
            return LockState.UNHELD
        try:
            value = self._connection.client.get(self._lock_key(key))
        except RedisError as e:
            logger.error(f"Redis lock check error for {key}: {e}")
            return LockState.UNHELD

        if value is None:
            return LockState.UNHELD
        if isinstance(value, bytes):
            value = value.decode("utf-8", "replace")
        if value == str(owner):
            return LockState.HELD_BY_OWNER
        return LockState.HELD_BY_OTHER

    def release(self, key: str, owner: str) -> bool:
        """Release a lock if this owner still holds it.

        A lock that expired and was re-granted to someone else is left
        alone. The local record is dropped either way.

        Args:
            key: Lock name
            owner: Owner token

        Returns:
            True if the lock was released
        """
        held = self.check(key, owner) is LockState.HELD_BY_OWNER
        if self._current_locks is not None:
            self._current_locks.pop(key, None)
        if not held:
            return False

        try:
            self._connection.client.delete(self._lock_key(key))
            return True
        except RedisError as e:
            logger.error(f"Redis lock release error for {key}: {e}")
            return False

    def shutdown_release_locks(self) -> None:
        """Release every lock this process still holds.

        Runs at interpreter exit. Reaching it with locks held means a
        caller skipped release().
        """
        for key, owner in list((self._current_locks or {}).items()):
            logger.warning(
                f"Automatically releasing Redis cache lock: {key} ({owner}) - "
                f"did somebody forget to call release_lock()?"
            )
            self.release(key, owner)

    def close(self) -> None:
        """Release held locks and drop the exit hook."""
        self.shutdown_release_locks()
        if self._current_locks is not None:
            atexit.unregister(self.shutdown_release_locks)
            self._current_locks = None

    @contextmanager
    def hold(self, key: str, owner: str) -> Iterator[None]:
        """Hold a lock for the duration of a block.

        Args:
            key: Lock name
            owner: Owner token

        Raises:
            LockNotAcquiredError: If the lock was not acquired in time
        """
        if not self.acquire(key, owner):
            raise LockNotAcquiredError(key, self.lock_wait)
        try:
            yield
        finally:
            self.release(key, owner)

    def __repr__(self) -> str:
        return f"LockManager(held={len(self._current_locks or {})})"


__all__ = ["LockManager", "LockState"]
