from fastapi import APIRouter, Depends
from fastapi.responses import Response

from orqos.api.dependencies import get_container_service
from orqos.domain.models import ReadFileRequest, WriteFileRequest, WriteFileResponse
from orqos.services.container_service import ContainerService

router = APIRouter(prefix="/containers", tags=["files"])


@router.post("/{container_id}/read-file")
async def read_file(
    container_id: str,
    req: ReadFileRequest,
    svc: ContainerService = Depends(get_container_service),
):
    content, media_type = await svc.read_file(container_id, req.path)
    return Response(content=content, media_type=media_type)


@router.post("/{container_id}/write-file", response_model=WriteFileResponse)
async def write_file(
    container_id: str,
    req: WriteFileRequest,
    svc: ContainerService = Depends(get_container_service),
):
    await svc.write_file(
        container_id,
        req.path,
        req.content,
        owner=req.owner,
        mode=req.mode,
        overwrite=req.overwrite,
    )
    return WriteFileResponse()
