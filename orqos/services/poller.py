"""Periodic sampling of container CPU/memory counters into the metric registry."""

from __future__ import annotations

import asyncio

from opentelemetry import trace
from orqos.core.logger import get_logger
from orqos.domain.errors import GatewayError
from orqos.infrastructure.docker.client import DockerGateway
from orqos.infrastructure.docker.stats_parser import parse_stats
from orqos.metrics.instruments import (
    POLL_CYCLE_SECONDS,
    POLL_CYCLE_TIMEOUTS_TOTAL,
    POLL_CYCLES_TOTAL,
    STATS_FETCH_FAILURES_TOTAL,
    TRACKED_CONTAINERS,
)
from orqos.metrics.registry import MetricRegistry
from orqos.metrics.snapshots import SnapshotTracker
from orqos.utils.concurrency import wait_for_stop

logger = get_logger("orqos.poller")
tracer = trace.get_tracer(__name__)


class MetricPoller:
    """Sole writer of the metric registry and the CPU snapshot tracker.

    Containers are sampled one after another within a cycle, so two stats
    requests for the same container never overlap. A whole cycle is bounded
    by ``cycle_timeout``; a hung request costs one cycle, never the poller.
    """

    def __init__(
        self,
        docker: DockerGateway,
        registry: MetricRegistry,
        snapshots: SnapshotTracker,
        interval: float = 5.0,
        cycle_timeout: float = 30.0,
    ):
        self.docker = docker
        self.registry = registry
        self.snapshots = snapshots
        self.interval = interval
        self.cycle_timeout = cycle_timeout

    async def poll_once(self) -> int:
        """Sample every running container once; returns how many were recorded."""
        try:
            container_ids = await self.docker.list_running_containers()
        except GatewayError as e:
            logger.warning("container_list_failed", extra={"error": str(e)})
            return 0

        sampled = 0
        for container_id in container_ids:
            if await self._sample(container_id):
                sampled += 1

        self.snapshots.retain(container_ids)
        swept = self.registry.sweep()
        if swept:
            logger.debug("registry_swept", extra={"removed": swept})
        TRACKED_CONTAINERS.set(len(self.registry.container_ids()))
        return sampled

    async def _sample(self, container_id: str) -> bool:
        try:
            payload = await self.docker.one_shot_stats(container_id)
        except GatewayError as e:
            STATS_FETCH_FAILURES_TOTAL.inc()
            logger.debug(
                "stats_fetch_failed",
                extra={"container_id": container_id, "error": str(e)},
            )
            return False

        reading = parse_stats(container_id, payload) if isinstance(payload, dict) else None
        if reading is None:
            STATS_FETCH_FAILURES_TOTAL.inc()
            return False

        fraction = self.snapshots.observe(
            container_id,
            reading["cpu_total_usage"],
            reading["system_cpu_usage"],
            reading["online_cpus"],
        )
        self.registry.record_cpu(container_id, fraction)
        self.registry.record_mem(container_id, reading["memory_usage"])
        return True

    async def run_cycle(self) -> bool:
        """One bounded cycle. Returns False when it was abandoned on timeout."""
        with tracer.start_as_current_span("metric_poll_cycle") as span:
            try:
                with POLL_CYCLE_SECONDS.time():
                    sampled = await asyncio.wait_for(
                        self.poll_once(), timeout=self.cycle_timeout
                    )
            except asyncio.TimeoutError:
                POLL_CYCLE_TIMEOUTS_TOTAL.inc()
                span.set_attribute("poll.timed_out", True)
                logger.warning(
                    "metric_poll_cycle_timeout",
                    extra={"timeout_s": self.cycle_timeout},
                )
                return False
            span.set_attribute("poll.containers_sampled", sampled)
        POLL_CYCLES_TOTAL.inc()
        logger.debug("metric_poll_cycle_done", extra={"sampled": sampled})
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info(
            "metric_poller_started",
            extra={"interval_s": self.interval, "timeout_s": self.cycle_timeout},
        )
        try:
            while not stop_event.is_set():
                try:
                    await self.run_cycle()
                except Exception:  # noqa: BLE001
                    logger.exception("metric_poll_cycle_failed")
                if await wait_for_stop(stop_event, self.interval):
                    break
        finally:
            logger.info("metric_poller_stopped")
