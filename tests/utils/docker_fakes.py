"""In-memory stand-ins for ``DockerGateway`` and its streams."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from orqos.domain.errors import ContainerNotFoundError, DaemonUnavailableError


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyStream:
    """Yields ``items``, then raises ``error``, blocks, or ends."""

    def __init__(
        self,
        items: Optional[List[Any]] = None,
        error: Optional[BaseException] = None,
        block: bool = False,
        on_next: Optional[Callable[[], None]] = None,
    ):
        self._items = list(items or [])
        self.error = error
        self.block = block
        self.on_next = on_next
        self.closed = False
        self.cancelled = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.on_next:
            self.on_next()
        if self._items:
            return self._items.pop(0)
        if self.error is not None:
            raise self.error
        if self.block:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        raise StopAsyncIteration

    def close(self):
        self.closed = True


class DummyDocker:
    def __init__(self):
        self.running: List[str] = []
        self.stats: Dict[str, List[Any]] = {}
        self.list_error: Optional[Exception] = None
        self.ping_error: Optional[Exception] = None
        self.missing: set = set()
        self.event_streams: List[Any] = []
        self.subscribe_calls = 0
        self.containers: List[dict] = []
        self.exec_results: Dict[str, Tuple[bytes, bytes, Optional[int]]] = {}
        self.stream_chunks: List[Tuple[Optional[bytes], Optional[bytes]]] = []
        self.archives: Dict[str, bytes] = {}
        self.uploads: List[Tuple[str, str, bytes]] = []
        self.calls: List[tuple] = []
        self._execs: Dict[str, List[str]] = {}
        self.closed = False

    def _check(self, container_id: str) -> None:
        if container_id in self.missing:
            raise ContainerNotFoundError(f"No such container: {container_id}")

    async def ping(self) -> bool:
        if self.ping_error is not None:
            raise self.ping_error
        return True

    async def version(self) -> dict:
        return {"Version": "25.0.0", "ApiVersion": "1.44"}

    async def list_running_containers(self) -> List[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.running)

    async def one_shot_stats(self, container_id: str) -> Any:
        queue = self.stats.get(container_id)
        if not queue:
            raise ContainerNotFoundError(f"No such container: {container_id}")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def subscribe_events(self):
        self.subscribe_calls += 1
        if not self.event_streams:
            raise DaemonUnavailableError("daemon gone")
        item = self.event_streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def list_containers(self, all=False, filters=None):
        self.calls.append(("list", all, filters))
        return list(self.containers)

    async def create_and_start(self, name, image, environment, ports, host_config):
        self.calls.append(("create", name, image, environment, ports, host_config))
        return "c0ffee" * 4

    async def stop(self, container_id, timeout):
        self.calls.append(("stop", container_id, timeout))
        self._check(container_id)

    async def remove(self, container_id, force, volumes):
        self.calls.append(("remove", container_id, force, volumes))
        self._check(container_id)

    async def exec_create(self, container_id, cmd, user=None):
        self._check(container_id)
        exec_id = f"exec-{len(self._execs)}"
        self._execs[exec_id] = list(cmd)
        self.calls.append(("exec", container_id, list(cmd), user))
        return exec_id

    def _result(self, exec_id: str) -> Tuple[bytes, bytes, Optional[int]]:
        cmd = self._execs[exec_id]
        return self.exec_results.get(cmd[0], (b"", b"", 0))

    async def exec_run(self, exec_id):
        stdout, stderr, _ = self._result(exec_id)
        return stdout, stderr

    async def exec_stream(self, exec_id):
        return DummyStream(list(self.stream_chunks))

    async def exec_exit_code(self, exec_id):
        return self._result(exec_id)[2]

    async def get_archive(self, container_id, path):
        self._check(container_id)
        if path not in self.archives:
            raise ContainerNotFoundError(f"Could not find the file {path}")
        return self.archives[path]

    async def put_archive(self, container_id, path, data):
        self._check(container_id)
        self.uploads.append((container_id, path, data))
        return True

    def close(self):
        self.closed = True


def stats_payload(
    total: int, system: int, cpus: Optional[int] = 1, memory: Optional[int] = 0
) -> dict:
    cpu_stats: Dict[str, Any] = {
        "cpu_usage": {"total_usage": total},
        "system_cpu_usage": system,
    }
    if cpus is not None:
        cpu_stats["online_cpus"] = cpus
    payload: Dict[str, Any] = {"cpu_stats": cpu_stats}
    if memory is not None:
        payload["memory_stats"] = {"usage": memory}
    return payload
