"""Orqos: management and telemetry gateway for a Docker daemon."""

__version__ = "0.1.0"
