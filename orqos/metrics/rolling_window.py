"""Time-bounded per-key sample cache.

Each key owns a deque of ``(timestamp, value)`` samples in insertion order.
Timestamps come from a monotonic clock, so insertion order is time order.
All mutation happens on the event-loop thread without a suspension point in
between, so readers never observe a half-applied ``record``.
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterator, Optional, Tuple

Sample = Tuple[float, float]

DEFAULT_RETENTION_SECONDS = 60.0


class RollingWindowStore:
    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retention_seconds = retention_seconds
        self.clock = clock
        self._windows: Dict[str, Deque[Sample]] = {}

    def record(self, key: str, timestamp: float, value: float) -> None:
        """Append a sample and evict everything older than the retention horizon."""
        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = deque()
        window.append((timestamp, float(value)))
        horizon = timestamp - self.retention_seconds
        while window and window[0][0] < horizon:
            window.popleft()

    def query_average(
        self, key: str, window_seconds: float, now: Optional[float] = None
    ) -> Optional[float]:
        total = 0.0
        count = 0
        for value in self._scan(key, window_seconds, now):
            total += value
            count += 1
        if count == 0:
            return None
        return total / count

    def query_maximum(
        self, key: str, window_seconds: float, now: Optional[float] = None
    ) -> Optional[float]:
        best: Optional[float] = None
        for value in self._scan(key, window_seconds, now):
            if math.isnan(value):
                continue
            if best is None or value > best:
                best = value
        return best

    def samples(self, key: str) -> list[Sample]:
        return list(self._windows.get(key, ()))

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop keys whose newest sample is past the retention horizon.

        Returns the number of keys removed.
        """
        now = self.clock() if now is None else now
        horizon = now - self.retention_seconds
        stale = [
            key
            for key, window in self._windows.items()
            if not window or window[-1][0] < horizon
        ]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def keys(self) -> list[str]:
        return list(self._windows)

    def __contains__(self, key: object) -> bool:
        return key in self._windows

    def __len__(self) -> int:
        return len(self._windows)

    def _scan(
        self, key: str, window_seconds: float, now: Optional[float]
    ) -> Iterator[float]:
        window = self._windows.get(key)
        if not window:
            return
        now = self.clock() if now is None else now
        span = min(window_seconds, self.retention_seconds)
        # Newest first; stop at the first sample outside the window.
        for ts, value in reversed(window):
            if now - ts > span:
                break
            yield value
