"""Shared utilities and components for the gateway services."""

from .config import BaseDockerConfig, BaseLoggingConfig, BaseServiceConfig

__all__ = [
    "BaseServiceConfig",
    "BaseLoggingConfig",
    "BaseDockerConfig",
]
