from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PortMap(BaseModel):
    container: int = Field(ge=1, le=65535)
    host: Optional[int] = Field(default=None, ge=0, le=65535)  # 0/None: pick one


class VolumeMap(BaseModel):
    source: str
    target: str
    ro: Optional[bool] = None


class ContainerCreate(BaseModel):
    name: str
    image: str
    cpu: Optional[str] = None  # "2", "1.5"
    memory: Optional[str] = None  # "1g"
    swap: Optional[str] = None  # "2g"
    env: Optional[List[str]] = None
    ports: Optional[List[PortMap]] = None
    network: Optional[str] = None  # defaults to "bridge"
    volumes: Optional[List[VolumeMap]] = None


class ContainerInfo(BaseModel):
    name: str
    id: str
    ports: Dict[str, int]


class StopContainerRequest(BaseModel):
    t: Optional[int] = Field(default=None, ge=0)


class RemoveContainerRequest(BaseModel):
    force: Optional[bool] = None
    v: Optional[bool] = None


class ExecRequest(BaseModel):
    cmd: List[str] = Field(examples=[["ls", "-la", "/data"]])
    user: Optional[str] = Field(default=None, examples=["1000:1000"])


class ExecResponse(BaseModel):
    stdout: str
    stderr: str
    exit_code: int


class ReadFileRequest(BaseModel):
    path: str  # absolute path inside the container


class WriteFileRequest(BaseModel):
    path: str
    content: str
    owner: Optional[str] = None  # e.g. "devuser:devuser"
    mode: Optional[str] = None  # e.g. "0644"
    overwrite: Optional[bool] = None


class WriteFileResponse(BaseModel):
    status: str = "ok"


class ContainerStats(BaseModel):
    """Windowed telemetry for one container."""

    cpu_avg: Optional[float] = None
    max_mem: Optional[int] = None
