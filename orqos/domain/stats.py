from typing import TypedDict


class StatsReading(TypedDict):
    """Counters extracted from one one-shot stats response.

    Fields:
        cpu_total_usage: Cumulative CPU time consumed by the container (ns).
        system_cpu_usage: Cumulative host CPU time (ns).
        online_cpus: Cores available to the container.
        memory_usage: Current memory usage in bytes.
    """

    cpu_total_usage: int
    system_cpu_usage: int
    online_cpus: int
    memory_usage: int
