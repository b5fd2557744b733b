from fastapi import Depends
from starlette.requests import HTTPConnection

from orqos.core.config import settings
from orqos.infrastructure.docker.client import DockerGateway
from orqos.metrics.registry import MetricRegistry
from orqos.realtime.broadcast import BroadcastChannel
from orqos.services.container_service import ContainerService


# HTTPConnection so the same providers serve both HTTP and WebSocket routes.
def get_metric_registry(conn: HTTPConnection) -> MetricRegistry:
    return conn.app.state.registry  # type: ignore[return-value]


def get_event_channel(conn: HTTPConnection) -> BroadcastChannel[str]:
    return conn.app.state.channel  # type: ignore[return-value]


def get_docker(conn: HTTPConnection) -> DockerGateway:
    return conn.app.state.docker  # type: ignore[return-value]


def get_container_service(
    docker: DockerGateway = Depends(get_docker),
) -> ContainerService:
    return ContainerService(docker, read_base=settings.orqos_read_base)
