"""Async facade over docker-py's low-level ``APIClient``.

docker-py is blocking, so every call runs through ``run_blocking``. Daemon
errors are translated into the gateway's error hierarchy here, once, so the
rest of the code never imports ``docker.errors``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

import docker
from docker.errors import APIError, DockerException, NotFound, StreamParseError
from requests.exceptions import RequestException
from urllib3.exceptions import HTTPError as Urllib3HTTPError
from orqos.core.logger import get_logger
from orqos.domain.errors import (
    ConflictError,
    ContainerNotFoundError,
    DaemonError,
    DaemonUnavailableError,
    InvalidRequestError,
)
from orqos.utils.concurrency import run_blocking

logger = get_logger("orqos.docker")

_END = object()

# What a chunked daemon stream can raise mid-read: connection resets come up
# from urllib3 untranslated, garbled frames as StreamParseError.
_STREAM_ERRORS = (
    DockerException,
    RequestException,
    Urllib3HTTPError,
    StreamParseError,
    OSError,
)


def _explain(exc: APIError) -> str:
    return str(getattr(exc, "explanation", None) or exc)


class AsyncStream:
    """Async iterator over a blocking docker-py stream.

    Each ``__anext__`` pulls one item in a worker thread. ``close()`` tears
    down the underlying HTTP response, which also unblocks a pending read.
    """

    def __init__(self, stream: Any):
        self._stream = stream
        self._iterator: Iterator[Any] = iter(stream)
        self.closed = False

    def __aiter__(self) -> "AsyncStream":
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        try:
            item = await run_blocking(next, self._iterator, _END)
        except _STREAM_ERRORS as exc:
            raise DaemonUnavailableError(f"stream interrupted: {exc}") from exc
        if item is _END:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self._stream, "close", None)
        if close is not None:
            try:
                close()
            except _STREAM_ERRORS as exc:
                logger.debug("stream_close_failed", extra={"error": str(exc)})


class DockerGateway:
    def __init__(self, api: docker.APIClient):
        self.api = api

    async def _call(self, func, *args, **kwargs):
        try:
            return await run_blocking(func, *args, **kwargs)
        except NotFound as exc:
            raise ContainerNotFoundError(_explain(exc)) from exc
        except APIError as exc:
            if exc.status_code == 409:
                raise ConflictError(_explain(exc)) from exc
            raise DaemonError(_explain(exc)) from exc
        except (DockerException, RequestException) as exc:
            raise DaemonUnavailableError(str(exc)) from exc

    # Telemetry ---------------------------------------------------------

    async def ping(self) -> bool:
        return bool(await self._call(self.api.ping))

    async def version(self) -> Dict[str, Any]:
        return await self._call(self.api.version)

    async def list_running_containers(self) -> List[str]:
        summaries = await self._call(self.api.containers, all=False)
        return [c["Id"] for c in summaries if c.get("Id")]

    async def one_shot_stats(self, container_id: str) -> Dict[str, Any]:
        return await self._call(
            self.api.stats, container_id, stream=False, one_shot=True
        )

    async def subscribe_events(self) -> AsyncStream:
        stream = await self._call(self.api.events, decode=True)
        return AsyncStream(stream)

    # Lifecycle ---------------------------------------------------------

    async def list_containers(
        self, all: bool = False, filters: Optional[Dict[str, List[str]]] = None
    ) -> List[Dict[str, Any]]:
        return await self._call(self.api.containers, all=all, filters=filters or None)

    async def create_and_start(
        self,
        name: str,
        image: str,
        environment: Optional[List[str]],
        ports: List[int],
        host_config: Dict[str, Any],
    ) -> str:
        try:
            config = self.api.create_host_config(**host_config)
        except DockerException as exc:
            raise InvalidRequestError(str(exc)) from exc
        created = await self._call(
            self.api.create_container,
            image,
            name=name,
            environment=environment,
            ports=ports or None,
            host_config=config,
        )
        await self._call(self.api.start, created["Id"])
        return created["Id"]

    async def stop(self, container_id: str, timeout: Optional[int]) -> None:
        await self._call(self.api.stop, container_id, timeout=timeout)

    async def remove(self, container_id: str, force: bool, volumes: bool) -> None:
        await self._call(
            self.api.remove_container, container_id, v=volumes, force=force
        )

    # Exec --------------------------------------------------------------

    async def exec_create(
        self, container_id: str, cmd: List[str], user: Optional[str] = None
    ) -> str:
        created = await self._call(
            self.api.exec_create,
            container_id,
            cmd,
            stdout=True,
            stderr=True,
            user=user or "",
        )
        return created["Id"]

    async def exec_run(self, exec_id: str) -> Tuple[bytes, bytes]:
        stdout, stderr = await self._call(self.api.exec_start, exec_id, demux=True)
        return stdout or b"", stderr or b""

    async def exec_stream(self, exec_id: str) -> AsyncStream:
        stream = await self._call(
            self.api.exec_start, exec_id, stream=True, demux=True
        )
        return AsyncStream(stream)

    async def exec_exit_code(self, exec_id: str) -> Optional[int]:
        inspect = await self._call(self.api.exec_inspect, exec_id)
        return inspect.get("ExitCode")

    # Files -------------------------------------------------------------

    async def get_archive(self, container_id: str, path: str) -> bytes:
        def _download() -> bytes:
            chunks, _stat = self.api.get_archive(container_id, path)
            return b"".join(chunks)

        return await self._call(_download)

    async def put_archive(self, container_id: str, path: str, data: bytes) -> bool:
        return await self._call(self.api.put_archive, container_id, path, data)

    def close(self) -> None:
        self.api.close()
