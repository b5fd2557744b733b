from fastapi import APIRouter, Request, Response

from orqos.domain.errors import GatewayError

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    try:
        await request.app.state.docker.ping()
    except GatewayError as e:
        return Response(status_code=503, content=str(e))
    return {"status": "ok", "docker": "reachable"}


@router.get("/readyz")
async def readyz(request: Request):
    tasks = getattr(request.app.state, "tasks", None) or []
    if tasks and all(not t.done() for t in tasks):
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
