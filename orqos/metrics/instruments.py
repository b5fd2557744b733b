"""Prometheus instruments describing the gateway's own background work."""

from shared.metrics import get_counter, get_gauge, get_histogram

SERVICE = "orqos"

# Metric poller
POLL_CYCLES_TOTAL = get_counter(
    "poll_cycles_total", "Metric poll cycles completed.", SERVICE
)
POLL_CYCLE_TIMEOUTS_TOTAL = get_counter(
    "poll_cycle_timeouts_total", "Metric poll cycles abandoned on timeout.", SERVICE
)
POLL_CYCLE_SECONDS = get_histogram(
    "poll_cycle_seconds", "Duration of a metric poll cycle.", SERVICE
)
STATS_FETCH_FAILURES_TOTAL = get_counter(
    "stats_fetch_failures_total",
    "Containers skipped in a poll cycle (fetch failed or counters missing).",
    SERVICE,
)
TRACKED_CONTAINERS = get_gauge(
    "tracked_containers", "Containers with samples in the metric registry.", SERVICE
)

# Event fan-out
EVENTS_RECEIVED_TOTAL = get_counter(
    "events_received_total", "Daemon events read from the upstream stream.", SERVICE
)
EVENTS_PUBLISHED_TOTAL = get_counter(
    "events_published_total", "Daemon events published to subscribers.", SERVICE
)
EVENT_STREAM_RECONNECTS_TOTAL = get_counter(
    "event_stream_reconnects_total",
    "Upstream event subscriptions that failed or ended and were retried.",
    SERVICE,
)
EVENT_SUBSCRIBERS = get_gauge(
    "event_subscribers", "Event WebSocket clients currently attached.", SERVICE
)
