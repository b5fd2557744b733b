import os

import docker
from docker.errors import DockerException

from orqos.core.config import settings
from orqos.core.logger import get_logger
from orqos.domain.errors import GatewayError
from orqos.infrastructure.docker.client import DockerGateway
from shared.utils.retry import retry_async

logger = get_logger("orqos.startup")


def _build_api_client() -> docker.APIClient:
    """Resolve the daemon endpoint: explicit URL, then environment, then Desktop socket."""
    timeout = settings.docker_timeout_seconds
    if settings.docker_base_url:
        return docker.APIClient(
            base_url=settings.docker_base_url, timeout=timeout, version="auto"
        )
    try:
        return docker.from_env(timeout=timeout).api
    except DockerException:
        desktop = os.path.expanduser(settings.docker_desktop_socket)
        if not os.path.exists(desktop):
            raise
        logger.info("docker_desktop_socket_fallback", extra={"socket": desktop})
        return docker.APIClient(
            base_url=f"unix://{desktop}", timeout=timeout, version="auto"
        )


async def connect_docker() -> DockerGateway:
    """Connect and ping the daemon, retrying; the last failure propagates."""

    async def _connect() -> DockerGateway:
        try:
            api = _build_api_client()
        except DockerException as e:
            raise GatewayError(f"cannot configure docker client: {e}") from e
        gateway = DockerGateway(api)
        try:
            await gateway.ping()
        except GatewayError:
            gateway.close()
            raise
        return gateway

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "docker_connect_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    gateway = await retry_async(
        _connect,
        retries=settings.docker_connect_retries,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        retry_on=(GatewayError,),
        on_retry=_on_retry,
    )
    info = await gateway.version()
    logger.info(
        "docker_connected",
        extra={
            "docker_version": info.get("Version"),
            "api_version": info.get("ApiVersion"),
        },
    )
    return gateway
