from typing import Optional

from fastapi import APIRouter, Depends, Response

from orqos.api.dependencies import get_container_service
from orqos.domain.models import (
    ContainerCreate,
    ContainerInfo,
    RemoveContainerRequest,
    StopContainerRequest,
)
from orqos.services.container_service import ContainerService

router = APIRouter(prefix="/containers", tags=["containers"])


@router.get("")
async def list_containers(
    status: Optional[str] = None,
    label: Optional[str] = None,
    name: Optional[str] = None,
    all: bool = False,
    svc: ContainerService = Depends(get_container_service),
):
    return await svc.list_containers(all=all, status=status, label=label, name=name)


@router.post("", response_model=ContainerInfo)
async def create_container(
    req: ContainerCreate, svc: ContainerService = Depends(get_container_service)
):
    return await svc.create(req)


@router.post("/{container_id}/stop", status_code=204)
async def stop_container(
    container_id: str,
    req: Optional[StopContainerRequest] = None,
    svc: ContainerService = Depends(get_container_service),
):
    timeout = req.t if req is not None and req.t is not None else 5
    await svc.stop(container_id, timeout)
    return Response(status_code=204)


@router.post("/{container_id}/remove", status_code=204)
async def remove_container(
    container_id: str,
    req: Optional[RemoveContainerRequest] = None,
    svc: ContainerService = Depends(get_container_service),
):
    req = req or RemoveContainerRequest()
    await svc.remove(container_id, force=bool(req.force), volumes=bool(req.v))
    return Response(status_code=204)
