from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from prometheus_client.registry import CollectorRegistry

from orqos.api.dependencies import get_metric_registry
from orqos.core.config import settings
from orqos.domain.models import ContainerStats
from orqos.metrics.exposition import ContainerMetricsCollector
from orqos.metrics.registry import MetricRegistry

router = APIRouter(prefix="/metrics")


@router.get("")
async def metrics(registry: MetricRegistry = Depends(get_metric_registry)):
    # Container gauges go through a throwaway registry so the process-wide
    # one never holds a reference to app state.
    windowed = CollectorRegistry(auto_describe=False)
    windowed.register(
        ContainerMetricsCollector(registry, settings.metrics_exposition_window_seconds)
    )
    body = generate_latest(REGISTRY) + generate_latest(windowed)
    return Response(body, media_type=CONTENT_TYPE_LATEST)


@router.get("/containers")
async def container_metrics(
    window: float = Query(default=10.0, gt=0),
    registry: MetricRegistry = Depends(get_metric_registry),
):
    return {
        container_id: ContainerStats(
            cpu_avg=registry.cpu_average(container_id, window),
            max_mem=registry.mem_maximum(container_id, window),
        ).model_dump()
        for container_id in registry.container_ids()
    }
