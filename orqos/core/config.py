from shared.config import BaseServiceConfig


class Settings(BaseServiceConfig):
    # Metric polling / rolling windows
    metrics_poll_interval_seconds: float = 5.0
    metrics_cycle_timeout_seconds: float = 30.0
    metrics_retention_seconds: float = 60.0
    metrics_exposition_window_seconds: float = 10.0

    # Event fan-out
    events_channel_capacity: int = 100  # ring buffer size per channel
    events_idle_interval_seconds: float = 1.0
    events_max_backoff_exponent: int = 5  # caps backoff at 2**5 = 32s

    # File transfer
    orqos_read_base: str = "/home"

    # HTTP server
    app_host: str = "127.0.0.1"
    app_port: int = 3000
    shutdown_grace_seconds: float = 5.0

    otel_service_name: str = "orqos"
    otel_exporter_endpoint: str | None = None


settings = Settings()
