"""Shared configuration base classes.

Provides the settings every gateway process needs (logging and the
container-engine connection) so service configs only add their own knobs.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "session",
    ]
    app_environment: str = "production"


class BaseDockerConfig(BaseSettings):
    """Connection settings for the container-engine daemon.

    ``docker_base_url`` of ``None`` means "use DOCKER_HOST or the local socket".
    """

    docker_base_url: str | None = None
    docker_desktop_socket: str = "~/.docker/desktop/docker.sock"
    docker_timeout_seconds: int = 120
    docker_connect_retries: int = 5


class BaseServiceConfig(BaseLoggingConfig, BaseDockerConfig):
    """Base configuration combining logging and daemon settings.

    The otel_service_name should be overridden by each service.
    """

    otel_service_name: str = "unknown"


__all__ = ["BaseLoggingConfig", "BaseDockerConfig", "BaseServiceConfig"]
