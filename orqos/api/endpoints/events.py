import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from orqos.api.dependencies import get_event_channel
from orqos.core.logger import get_logger
from orqos.realtime.broadcast import (
    BroadcastChannel,
    ChannelClosedError,
    LaggedError,
    Subscription,
)

router = APIRouter()
logger = get_logger("orqos.api.events")


async def _forward(websocket: WebSocket, sub: Subscription[str]) -> None:
    while True:
        try:
            envelope = await sub.recv()
        except LaggedError as e:
            logger.debug("event_subscriber_lagged", extra={"missed": e.missed})
            continue
        await websocket.send_text(envelope)


async def _drain_client(websocket: WebSocket) -> None:
    # Inbound frames are ignored; this only notices the client going away.
    while True:
        await websocket.receive_text()


@router.websocket("/events/ws")
async def events_ws(
    websocket: WebSocket,
    channel: BroadcastChannel[str] = Depends(get_event_channel),
):
    await websocket.accept()
    try:
        sub = channel.subscribe()
    except ChannelClosedError:
        await websocket.close(code=1001)
        return

    logger.info("event_subscriber_connected", extra={"subscribers": channel.receiver_count})
    forward = asyncio.create_task(_forward(websocket, sub))
    drain = asyncio.create_task(_drain_client(websocket))
    try:
        done, _ = await asyncio.wait(
            {forward, drain}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in done:
            exc = task.exception()
            if exc is None or isinstance(
                exc, (WebSocketDisconnect, ChannelClosedError, RuntimeError, OSError)
            ):
                continue
            raise exc
    finally:
        forward.cancel()
        drain.cancel()
        await asyncio.gather(forward, drain, return_exceptions=True)
        sub.close()
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close(code=1001)
        logger.info(
            "event_subscriber_disconnected",
            extra={"subscribers": channel.receiver_count},
        )
