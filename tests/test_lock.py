"""Tests for cross-process locks.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import logging
import threading
import time

import pytest

from roadstore_core.exceptions import LockNotAcquiredError
from roadstore_core.lock import manager as lock_manager
from roadstore_core.lock.manager import LockManager, LockState
from roadstore_core.store.connection import RedisConnection


class FakeTime:
    """Sleep and timer pair that advances without waiting."""

    def __init__(self):
        self.now = 0.0
        self.delays = []

    def sleep(self, seconds):
        self.delays.append(seconds)
        self.now += seconds

    def timer(self):
        return self.now


class TestLockBasics:
    """Tests for acquire, check and release."""

    def test_acquire_check_release(self, store):
        """Test the lock life cycle."""
        assert store.acquire_lock("lock1", "123")
        assert store.check_lock_state("lock1", "123") is LockState.HELD_BY_OWNER
        assert store.check_lock_state("lock1", "456") is LockState.HELD_BY_OTHER
        assert store.held_locks == {"lock1": "123"}

        assert store.release_lock("lock1", "123")

        assert store.check_lock_state("lock1", "123") is LockState.UNHELD
        assert store.held_locks == {}

    def test_lock_key_is_prefixed(self, make_store, fake_redis):
        """Test locks live under the configured prefix."""
        store = make_store(prefix="site_")

        store.acquire_lock("lock1", "123")

        assert fake_redis.get("site_lock1") == b"123"

    def test_lock_expires(self, make_store, fake_redis):
        """Test the lock key carries the lock timeout."""
        store = make_store(locktimeout=0)

        store.acquire_lock("lock1", "123")
        time.sleep(0.01)

        assert store.check_lock_state("lock1", "123") is LockState.UNHELD

    def test_release_unheld(self, store):
        """Test releasing a lock nobody holds."""
        assert not store.release_lock("lock1", "123")

    def test_release_by_other(self, make_store):
        """Test a non-owner cannot release a lock."""
        owner = make_store(name="a")
        other = make_store(name="b")
        owner.acquire_lock("lock1", "123")

        assert not other.release_lock("lock1", "456")
        assert owner.check_lock_state("lock1", "123") is LockState.HELD_BY_OWNER

    def test_hold(self, store):
        """Test the context manager releases on exit."""
        with store.lock("lock1", "123"):
            assert store.check_lock_state("lock1", "123") is LockState.HELD_BY_OWNER

        assert store.check_lock_state("lock1", "123") is LockState.UNHELD

    def test_hold_timeout(self, make_store):
        """Test the context manager raises when the lock is busy."""
        holder = make_store(name="a")
        waiter = make_store(name="b", lockwait=0)
        holder.acquire_lock("lock1", "123")

        with pytest.raises(LockNotAcquiredError) as exc_info:
            with waiter.lock("lock1", "456"):
                pass

        assert exc_info.value.key == "lock1"

    def test_remote_failure(self, make_store, fake_redis):
        """Test remote errors deny and report unheld."""
        store = make_store(lockwait=0)
        fake_redis.down = True

        assert not store.acquire_lock("lock1", "123")
        assert store.check_lock_state("lock1", "123") is LockState.UNHELD


class TestContention:
    """Tests for competing lock holders."""

    def test_exclusive(self, make_store):
        """Test exactly one of two racing owners wins."""
        stores = [make_store(name="a", lockwait=0), make_store(name="b", lockwait=0)]
        barrier = threading.Barrier(2)
        results = {}

        def attempt(store, owner):
            barrier.wait()
            results[owner] = store.acquire_lock("lock1", owner)

        threads = [
            threading.Thread(target=attempt, args=(s, owner))
            for s, owner in zip(stores, ("123", "456"))
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results.values()) == [False, True]

    def test_waits_for_release(self, make_store):
        """Test a waiter gets the lock once it is released."""
        holder = make_store(name="a")
        waiter = make_store(name="b", lockwait=5)
        holder.acquire_lock("lock1", "123")
        results = []

        thread = threading.Thread(
            target=lambda: results.append(waiter.acquire_lock("lock1", "456"))
        )
        thread.start()
        time.sleep(0.3)
        holder.release_lock("lock1", "123")
        thread.join()

        assert results == [True]
        assert waiter.check_lock_state("lock1", "456") is LockState.HELD_BY_OWNER

    def test_expired_lock_cannot_be_hijacked(self, make_store):
        """Test an expired holder cannot release the new owner's lock."""
        first = make_store(name="a", locktimeout=0)
        second = make_store(name="b")

        assert first.acquire_lock("lock1", "123")
        time.sleep(0.01)
        assert second.acquire_lock("lock1", "456")

        assert first.check_lock_state("lock1", "123") is LockState.HELD_BY_OTHER
        assert not first.release_lock("lock1", "123")
        assert first.held_locks == {}
        assert second.check_lock_state("lock1", "456") is LockState.HELD_BY_OWNER


class TestBackoff:
    """Tests for the polling schedule."""

    @pytest.fixture
    def busy(self, fake_redis):
        fake_redis.set("lock1", "other", px=600000)
        return RedisConnection(fake_redis, ready=True)

    def test_fast_then_slow(self, busy):
        """Test fast polling for the first seconds, then slow polling."""
        fake_time = FakeTime()
        manager = LockManager(busy, lock_wait=8, sleep=fake_time.sleep, timer=fake_time.timer)

        assert not manager.acquire("lock1", "123")

        waited = 0.0
        for delay in fake_time.delays:
            if waited < 5:
                assert 0.1 <= delay <= 0.11
            else:
                assert 1.0 <= delay <= 1.1
            waited += delay
        assert any(delay >= 1.0 for delay in fake_time.delays)
        assert fake_time.now >= 8

    def test_custom_ranges(self, busy):
        """Test configured delay ranges."""
        fake_time = FakeTime()
        manager = LockManager(
            busy,
            lock_wait=1,
            fast_delay_ms=(5, 5),
            slow_delay_ms=(50, 50),
            fast_period=0.5,
            sleep=fake_time.sleep,
            timer=fake_time.timer,
        )

        manager.acquire("lock1", "123")

        assert set(fake_time.delays) == {0.005, 0.05}

    def test_zero_wait_tries_once(self, busy, fake_redis):
        """Test no sleeping with a zero wait."""
        fake_time = FakeTime()
        manager = LockManager(busy, lock_wait=0, sleep=fake_time.sleep, timer=fake_time.timer)
        fake_redis.commands.clear()

        assert not manager.acquire("lock1", "123")
        assert fake_time.delays == []
        assert fake_redis.commands == ["SET"]

    def test_not_ready(self, fake_redis):
        """Test nothing is attempted without a connection."""
        manager = LockManager(RedisConnection(fake_redis, ready=False))

        assert not manager.acquire("lock1", "123")
        assert fake_redis.commands == []


class TestShutdownRelease:
    """Tests for releasing forgotten locks."""

    def test_shutdown_releases(self, store, caplog):
        """Test forgotten locks are released with a warning."""
        store.acquire_lock("lock1", "123")
        store.acquire_lock("lock2", "123")

        with caplog.at_level(logging.WARNING):
            store.shutdown_release_locks()

        assert "did somebody forget to call release_lock()" in caplog.text
        assert store.check_lock_state("lock1", "123") is LockState.UNHELD
        assert store.check_lock_state("lock2", "123") is LockState.UNHELD
        assert store.held_locks == {}

    def test_hook_registered_once(self, fake_redis, monkeypatch):
        """Test the exit hook is registered on the first grant only."""
        registered = []
        unregistered = []
        monkeypatch.setattr(lock_manager.atexit, "register", registered.append)
        monkeypatch.setattr(lock_manager.atexit, "unregister", unregistered.append)
        manager = LockManager(RedisConnection(fake_redis, ready=True))

        manager.acquire("lock1", "123")
        manager.acquire("lock2", "123")
        assert registered == [manager.shutdown_release_locks]

        manager.close()
        assert unregistered == [manager.shutdown_release_locks]
        assert manager.held_locks == {}

    def test_no_hook_without_grant(self, fake_redis, monkeypatch):
        """Test nothing is registered when no lock was granted."""
        registered = []
        monkeypatch.setattr(lock_manager.atexit, "register", registered.append)
        fake_redis.down = True
        manager = LockManager(RedisConnection(fake_redis, ready=True), lock_wait=0)

        assert not manager.acquire("lock1", "123")

        assert registered == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
