"""Time sources used to stamp cache entries."""

from __future__ import annotations

import time
from typing import Protocol


class ClockSource(Protocol):
    """Anything returning a monotonic timestamp in seconds."""

    def now(self) -> float:
        ...


class MonotonicClock:
    # Immune to wall-clock adjustments
    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to; used to make eviction order deterministic."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, value: float) -> None:
        if value < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = float(value)
