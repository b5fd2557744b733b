import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from orqos import __version__
from orqos.api.router import api_router
from orqos.core.config import settings
from orqos.core.logger import configure_logging, get_logger
from orqos.core.tracing import configure_tracing
from orqos.domain.errors import GatewayError
from orqos.metrics.registry import MetricRegistry
from orqos.metrics.snapshots import SnapshotTracker
from orqos.realtime.broadcast import BroadcastChannel
from orqos.realtime.fanout import EventFanout
from orqos.services.poller import MetricPoller
from orqos.startup import connect_docker

configure_logging()
logger = get_logger("orqos.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("orqos_starting", extra={"version": __version__})
    tracer_provider = None
    if settings.otel_exporter_endpoint:
        tracer_provider = configure_tracing(settings.otel_exporter_endpoint)

    app.state.docker = await connect_docker()
    app.state.registry = MetricRegistry(settings.metrics_retention_seconds)
    app.state.snapshots = SnapshotTracker()
    app.state.channel = BroadcastChannel[str](settings.events_channel_capacity)
    app.state.stop_event = asyncio.Event()

    poller = MetricPoller(
        app.state.docker,
        app.state.registry,
        app.state.snapshots,
        interval=settings.metrics_poll_interval_seconds,
        cycle_timeout=settings.metrics_cycle_timeout_seconds,
    )
    fanout = EventFanout(
        app.state.docker,
        app.state.channel,
        idle_interval=settings.events_idle_interval_seconds,
        max_backoff_exponent=settings.events_max_backoff_exponent,
    )
    app.state.tasks = [
        asyncio.create_task(poller.run(app.state.stop_event), name="metric_poller"),
        asyncio.create_task(fanout.run(app.state.stop_event), name="event_fanout"),
    ]
    logger.info("orqos_started")
    try:
        yield
    finally:
        logger.info("orqos_stopping")
        app.state.stop_event.set()
        app.state.channel.close()
        for task in app.state.tasks:
            await _drain_task(task, settings.shutdown_grace_seconds)
        app.state.docker.close()
        if tracer_provider is not None:
            tracer_provider.shutdown()
        logger.info("orqos_stopped")


async def _drain_task(task: asyncio.Task, grace: float) -> None:
    try:
        await asyncio.wait_for(task, timeout=grace)
    except asyncio.TimeoutError:
        # wait_for already cancelled it
        logger.warning("background_task_cancelled", extra={"task": task.get_name()})
    except asyncio.CancelledError:
        logger.debug("background_task_cancelled", extra={"task": task.get_name()})
    except Exception:  # noqa: BLE001
        logger.exception("background_task_failed", extra={"task": task.get_name()})


app = FastAPI(title="Orqos", version=__version__, lifespan=lifespan)
app.include_router(api_router)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    if exc.status_code >= 500:
        logger.warning(
            "request_failed",
            extra={"path": request.url.path, "status": exc.status_code, "error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/openapi.json", "/metrics"],
    inprogress_name="orqos_http_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app)


def main() -> None:
    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_config=None)


if __name__ == "__main__":
    main()
