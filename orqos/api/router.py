from fastapi import APIRouter

from .endpoints import commands, containers, events, files, health, metrics

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(metrics.router)
api_router.include_router(events.router)
api_router.include_router(containers.router)
api_router.include_router(commands.router)
api_router.include_router(files.router)
