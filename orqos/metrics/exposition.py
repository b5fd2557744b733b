from __future__ import annotations

from typing import Iterable

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from .registry import MetricRegistry


class ContainerMetricsCollector(Collector):
    """Exposes windowed per-container CPU average and memory maximum.

    Produces ``rezn_cpu_usage_avg10{container="..."}`` and
    ``rezn_mem_usage_max10{container="..."}`` (the suffix follows the window).
    Containers without samples inside the window are left out.
    """

    def __init__(self, registry: MetricRegistry, window_seconds: float = 10.0):
        self.registry = registry
        self.window_seconds = window_seconds

    def collect(self) -> Iterable[GaugeMetricFamily]:
        suffix = f"{self.window_seconds:g}".replace(".", "_")
        cpu = GaugeMetricFamily(
            f"rezn_cpu_usage_avg{suffix}",
            f"Average CPU usage in cores over the last {suffix}s.",
            labels=["container"],
        )
        mem = GaugeMetricFamily(
            f"rezn_mem_usage_max{suffix}",
            f"Peak memory usage in bytes over the last {suffix}s.",
            labels=["container"],
        )
        for container_id in self.registry.container_ids():
            avg = self.registry.cpu_average(container_id, self.window_seconds)
            if avg is not None:
                cpu.add_metric([container_id], avg)
            peak = self.registry.mem_maximum(container_id, self.window_seconds)
            if peak is not None:
                mem.add_metric([container_id], peak)
        yield cpu
        yield mem
