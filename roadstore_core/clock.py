"""RoadStore Clock - Logical Time for TTL Scoring.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import time
from typing import Optional


class Clock:
    """Whole-second clock used for TTL index scores and expiry cutoffs.

    Tests can freeze it at a fixed value to simulate elapsed time.

    Example:
        clock = Clock()
        clock.set_time(1000)
        clock.time()      # 1000
        clock.set_time()  # back to wall-clock time
    """

    def __init__(self):
        self._frozen: Optional[int] = None

    def time(self) -> int:
        """Get the current logical time.

        Returns:
            Frozen time if set, else wall-clock seconds
        """
        if self._frozen:
            return self._frozen
        return int(time.time())

    def set_time(self, value: int = 0) -> None:
        """Freeze the clock.

        Args:
            value: Time to report; 0 returns to wall-clock time
        """
        self._frozen = int(value) if value else None

    @property
    def is_frozen(self) -> bool:
        return self._frozen is not None

    def __repr__(self) -> str:
        return f"Clock(frozen={self._frozen})"


default_clock = Clock()


__all__ = ["Clock", "default_clock"]
