from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from orqos.api.dependencies import get_container_service
from orqos.core.logger import get_logger
from orqos.domain.errors import GatewayError, InvalidRequestError
from orqos.domain.models import ExecRequest, ExecResponse
from orqos.services.container_service import (
    ContainerService,
    validate_command,
    validate_container_id,
)

router = APIRouter(prefix="/containers", tags=["exec"])
logger = get_logger("orqos.api.exec")

EXIT_CODE_PREFIX = "__exit_code:"


@router.post("/{container_id}/exec", response_model=ExecResponse)
async def exec_command(
    container_id: str,
    req: ExecRequest,
    svc: ContainerService = Depends(get_container_service),
):
    return await svc.exec_once(container_id, req)


@router.websocket("/{container_id}/exec/ws")
async def exec_stream(
    websocket: WebSocket,
    container_id: str,
    svc: ContainerService = Depends(get_container_service),
):
    """Stream a command's output as binary frames, then ``__exit_code:<n>``."""
    await websocket.accept()
    cmd = websocket.query_params.getlist("cmd")
    user = websocket.query_params.get("user") or None
    try:
        validate_container_id(container_id)
        validate_command(cmd)
    except InvalidRequestError as e:
        await websocket.send_text(f"error: {e.message}")
        await websocket.close(code=1008)
        return

    docker = svc.docker
    stream = None
    try:
        exec_id = await docker.exec_create(container_id, cmd, user)
        stream = await docker.exec_stream(exec_id)
        async for stdout, stderr in stream:
            for chunk in (stdout, stderr):
                if chunk:
                    await websocket.send_bytes(chunk)
        exit_code = await docker.exec_exit_code(exec_id)
        await websocket.send_text(
            f"{EXIT_CODE_PREFIX}{-1 if exit_code is None else exit_code}"
        )
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("exec_client_disconnected", extra={"container_id": container_id})
    except GatewayError as e:
        logger.warning(
            "exec_stream_failed",
            extra={"container_id": container_id, "error": e.message},
        )
        await websocket.send_text(f"error: {e.message}")
        await websocket.close(code=1011)
    finally:
        if stream is not None:
            stream.close()
