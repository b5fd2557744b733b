"""Container lifecycle, exec and file transfer on top of the Docker gateway."""

from __future__ import annotations

import io
import mimetypes
import posixpath
import random
import re
import socket
import tarfile
import time
from typing import Dict, List, Optional, Tuple

import filetype
from orqos.core.logger import get_logger
from orqos.domain.errors import (
    ConflictError,
    ContainerNotFoundError,
    DaemonError,
    ForbiddenError,
    InvalidRequestError,
)
from orqos.domain.models import (
    ContainerCreate,
    ContainerInfo,
    ExecRequest,
    ExecResponse,
)
from orqos.infrastructure.docker.client import DockerGateway

logger = get_logger("orqos.containers")

CONTAINER_ID_RE = re.compile(r"^[a-zA-Z0-9_.-]{1,64}$")
BANNED_READ_PREFIXES = ("/etc", "/proc", "/sys", "/dev", "/var/run")
HOST_PORT_RANGE = (20000, 65535)
CPU_PERIOD = 100_000

_BYTE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}


def parse_cpu(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 1.0


def parse_bytes(value: str) -> int:
    """Parse sizes like "512m" or "1g" (binary units); plain numbers are bytes."""
    s = value.strip().lower()
    unit = _BYTE_UNITS.get(s[-1:]) if s else None
    if unit is not None:
        try:
            return int(s[:-1]) * unit
        except ValueError:
            return unit
    try:
        return int(s)
    except ValueError:
        return 0


def pick_host_port(max_attempts: int = 100) -> int:
    for _ in range(max_attempts):
        port = random.randint(*HOST_PORT_RANGE)
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(("127.0.0.1", port))
            except OSError:
                continue
        return port
    raise DaemonError(f"no free host port after {max_attempts} attempts")


def validate_container_id(container_id: str) -> None:
    if not CONTAINER_ID_RE.match(container_id):
        raise InvalidRequestError("Invalid container ID format")


def validate_command(cmd: List[str]) -> None:
    if not cmd:
        raise InvalidRequestError("Command cannot be empty")


def clean_path(raw: str) -> str:
    """Normalise an absolute container path, rejecting any ``..`` component."""
    if not raw.startswith("/"):
        raise InvalidRequestError("path must be absolute")
    parts = []
    for part in raw.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            raise InvalidRequestError("path traversal not allowed")
        parts.append(part)
    return "/" + "/".join(parts)


def _within(path: str, base: str) -> bool:
    base = base.rstrip("/") or "/"
    return base == "/" or path == base or path.startswith(base + "/")


def guess_media_type(path: str, content: bytes) -> str:
    """Sniff the file's magic bytes; plain-text formats fall back to the name."""
    mime = filetype.guess_mime(content) if content else None
    if mime is None:
        mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


def build_single_file_tar(name: str, content: bytes, mode: int = 0o644) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        info = tarfile.TarInfo(name=name)
        info.size = len(content)
        info.mode = mode
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def extract_single_file(archive: bytes) -> bytes:
    """Return the only regular file inside a (possibly gzipped) tar archive."""
    with tarfile.open(fileobj=io.BytesIO(archive), mode="r:*") as tar:
        members = tar.getmembers()
        if not members:
            raise ContainerNotFoundError("File not found")
        member = members[0]
        if member.issym() or member.islnk():
            raise ForbiddenError("symlinks not allowed")
        if member.isdir() or len(members) > 1:
            raise InvalidRequestError("path appears to be a directory")
        fh = tar.extractfile(member)
        if fh is None:
            raise InvalidRequestError("path is not a regular file")
        return fh.read()


class ContainerService:
    """Pass-through container operations with request validation.

    Every daemon failure arrives here already translated into a
    ``GatewayError`` by the gateway.
    """

    def __init__(self, docker: DockerGateway, read_base: str = "/home"):
        self.docker = docker
        self.read_base = read_base

    async def list_containers(
        self,
        all: bool = False,
        status: Optional[str] = None,
        label: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[dict]:
        filters: Dict[str, List[str]] = {}
        for key, raw in (("label", label), ("status", status), ("name", name)):
            if raw:
                values = [v for v in raw.split(",") if v]
                if values:
                    filters[key] = values
        logger.debug("listing_containers", extra={"all": all, "filters": filters})
        return await self.docker.list_containers(all=all, filters=filters)

    async def create(self, req: ContainerCreate) -> ContainerInfo:
        exposed: List[int] = []
        bindings: Dict[int, Tuple[str, int]] = {}
        report: Dict[str, int] = {}
        for mapping in req.ports or []:
            host_port = mapping.host or pick_host_port()
            exposed.append(mapping.container)
            bindings[mapping.container] = ("0.0.0.0", host_port)
            report[f"{mapping.container}/tcp"] = host_port

        host_config: Dict[str, object] = {
            "network_mode": req.network or "bridge",
        }
        if req.volumes:
            host_config["binds"] = [
                f"{v.source}:{v.target}{':ro' if v.ro else ''}" for v in req.volumes
            ]
        if req.cpu:
            host_config["cpu_period"] = CPU_PERIOD
            host_config["cpu_quota"] = int(parse_cpu(req.cpu) * CPU_PERIOD)
        if req.memory:
            host_config["mem_limit"] = parse_bytes(req.memory)
        if req.swap:
            host_config["memswap_limit"] = parse_bytes(req.swap)
        if bindings:
            host_config["port_bindings"] = bindings

        container_id = await self.docker.create_and_start(
            name=req.name,
            image=req.image,
            environment=req.env,
            ports=exposed,
            host_config=host_config,
        )
        logger.info(
            "container_created",
            extra={"container_name": req.name, "container_id": container_id},
        )
        return ContainerInfo(name=req.name, id=container_id, ports=report)

    async def stop(self, container_id: str, timeout: Optional[int] = 5) -> None:
        await self.docker.stop(container_id, timeout)

    async def remove(self, container_id: str, force: bool = False, volumes: bool = False) -> None:
        logger.debug(
            "removing_container",
            extra={"container_id": container_id, "force": force, "volumes": volumes},
        )
        await self.docker.remove(container_id, force=force, volumes=volumes)

    async def exec_once(self, container_id: str, req: ExecRequest) -> ExecResponse:
        validate_container_id(container_id)
        validate_command(req.cmd)
        exec_id = await self.docker.exec_create(container_id, req.cmd, req.user)
        stdout, stderr = await self.docker.exec_run(exec_id)
        exit_code = await self.docker.exec_exit_code(exec_id)
        return ExecResponse(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=-1 if exit_code is None else exit_code,
        )

    async def read_file(self, container_id: str, raw_path: str) -> Tuple[bytes, str]:
        target = clean_path(raw_path)
        if not _within(target, clean_path(self.read_base)):
            raise ForbiddenError("path outside allowed base directory")
        if any(_within(target, banned) for banned in BANNED_READ_PREFIXES):
            raise ForbiddenError("access to system dirs forbidden")

        archive = await self.docker.get_archive(container_id, target)
        try:
            content = extract_single_file(archive)
        except tarfile.TarError as e:
            raise DaemonError(f"unreadable archive: {e}") from e
        return content, guess_media_type(target, content)

    async def write_file(
        self,
        container_id: str,
        path: str,
        content: str,
        owner: Optional[str] = None,
        mode: Optional[str] = None,
        overwrite: Optional[bool] = None,
    ) -> None:
        if not path.startswith("/"):
            raise InvalidRequestError("path must be absolute (begin with '/')")
        target = clean_path(path)
        if target == "/":
            raise InvalidRequestError("path must name a file")

        if overwrite is False:
            probe = await self.exec_once(
                container_id, ExecRequest(cmd=["test", "-e", target], user="root")
            )
            if probe.exit_code == 0:
                raise ConflictError(f"Refusing to overwrite existing file at {target}")

        parent, name = posixpath.split(target)
        archive = build_single_file_tar(name, content.encode("utf-8"))
        await self.docker.put_archive(container_id, parent or "/", archive)

        if owner:
            await self._run_as_root(container_id, ["chown", owner, target])
        if mode:
            await self._run_as_root(container_id, ["chmod", mode, target])
        logger.info(
            "file_written",
            extra={"container_id": container_id, "path": target, "bytes": len(content)},
        )

    async def _run_as_root(self, container_id: str, cmd: List[str]) -> None:
        result = await self.exec_once(container_id, ExecRequest(cmd=cmd, user="root"))
        if result.exit_code != 0:
            raise DaemonError(f"exec {cmd[0]} failed: {result.stderr.strip()}")
