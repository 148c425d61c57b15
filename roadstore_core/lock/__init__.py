"""Lock module - Distributed locks."""

from roadstore_core.lock.manager import LockManager, LockState

__all__ = ["LockManager", "LockState"]
