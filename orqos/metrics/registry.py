from __future__ import annotations

import time
from typing import Callable, Optional

from .rolling_window import DEFAULT_RETENTION_SECONDS, RollingWindowStore


class MetricRegistry:
    """Rolling-window CPU and memory samples per container.

    Written only by the metric poller; read by the metrics endpoints.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.clock = clock
        self.cpu = RollingWindowStore(retention_seconds, clock)
        self.mem = RollingWindowStore(retention_seconds, clock)

    def record_cpu(self, container_id: str, fraction: float) -> None:
        self.cpu.record(container_id, self.clock(), fraction)

    def record_mem(self, container_id: str, usage_bytes: int) -> None:
        self.mem.record(container_id, self.clock(), usage_bytes)

    def cpu_average(self, container_id: str, window_seconds: float) -> Optional[float]:
        return self.cpu.query_average(container_id, window_seconds)

    def mem_maximum(self, container_id: str, window_seconds: float) -> Optional[int]:
        value = self.mem.query_maximum(container_id, window_seconds)
        return None if value is None else int(value)

    def container_ids(self) -> list[str]:
        ids = self.cpu.keys()
        ids.extend(k for k in self.mem.keys() if k not in self.cpu)
        return sorted(ids)

    def sweep(self) -> int:
        now = self.clock()
        return self.cpu.sweep(now) + self.mem.sweep(now)
