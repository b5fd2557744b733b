from __future__ import annotations

from typing import Any, Optional

from orqos.core.logger import get_logger
from orqos.domain.stats import StatsReading

logger = get_logger("orqos.stats_parser")


def parse_stats(container_id: str, payload: dict) -> Optional[StatsReading]:
    """Extract CPU/memory counters from a one-shot stats payload.

    Returns None when the CPU counters are missing, since no utilisation can
    be derived from such a reading.
    """
    cpu_stats = payload.get("cpu_stats") or {}
    cpu_usage = cpu_stats.get("cpu_usage") or {}
    total = _coerce_int(cpu_usage.get("total_usage"))
    system = _coerce_int(cpu_stats.get("system_cpu_usage"))
    if total is None or system is None:
        logger.debug(
            "stats_missing_cpu_counters", extra={"container_id": container_id}
        )
        return None

    cores = _coerce_int(cpu_stats.get("online_cpus"))
    if not cores:
        cores = len(cpu_usage.get("percpu_usage") or ()) or 1

    memory = _coerce_int((payload.get("memory_stats") or {}).get("usage")) or 0
    return StatsReading(
        cpu_total_usage=total,
        system_cpu_usage=system,
        online_cpus=cores,
        memory_usage=max(memory, 0),
    )


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None
