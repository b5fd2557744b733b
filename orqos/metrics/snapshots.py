"""Per-container memory of the previous cumulative CPU counters.

Utilisation is derived from the deltas of two monotonically increasing
counters (container CPU time and host CPU time) between consecutive polls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional


@dataclass(frozen=True)
class CpuSnapshot:
    total_usage: int
    system_usage: int


def cpu_fraction(
    previous: Optional[CpuSnapshot], current: CpuSnapshot, online_cpus: int
) -> float:
    """CPU utilisation between two snapshots, in cores (may exceed 1.0).

    The first observation has nothing to diff against and yields 0.0, as do
    stalled or regressed counters.
    """
    if previous is None:
        return 0.0
    cpu_delta = max(current.total_usage - previous.total_usage, 0)
    sys_delta = max(current.system_usage - previous.system_usage, 0)
    if cpu_delta <= 0 or sys_delta <= 0:
        return 0.0
    return cpu_delta / sys_delta * max(online_cpus, 1)


class SnapshotTracker:
    def __init__(self) -> None:
        self._snapshots: Dict[str, CpuSnapshot] = {}

    def observe(
        self, container_id: str, total_usage: int, system_usage: int, online_cpus: int
    ) -> float:
        """Return utilisation since the last observation and store the new baseline."""
        current = CpuSnapshot(total_usage=total_usage, system_usage=system_usage)
        fraction = cpu_fraction(self._snapshots.get(container_id), current, online_cpus)
        self._snapshots[container_id] = current
        return fraction

    def get(self, container_id: str) -> Optional[CpuSnapshot]:
        return self._snapshots.get(container_id)

    def retain(self, container_ids: Iterable[str]) -> int:
        """Forget containers not in ``container_ids``; returns how many were dropped."""
        keep = set(container_ids)
        gone = [cid for cid in self._snapshots if cid not in keep]
        for cid in gone:
            del self._snapshots[cid]
        return len(gone)

    def __len__(self) -> int:
        return len(self._snapshots)
