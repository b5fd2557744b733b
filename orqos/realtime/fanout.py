"""Relay of the daemon's event stream into the events broadcast channel.

The task cycles through three states:

* idle: nobody is subscribed, so no upstream connection is held; the
  subscriber count is re-checked every ``idle_interval`` seconds;
* active: an upstream subscription is open and every event is published as
  a JSON text envelope;
* backoff: the upstream subscription failed or ended; wait
  ``2 ** min(attempt, max_backoff_exponent)`` seconds before reconnecting.

``attempt`` is reset as soon as a subscription delivers an event. The task
ends when its stop event is set or the channel is closed.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from orqos.core.logger import get_logger
from orqos.domain.errors import GatewayError
from orqos.infrastructure.docker.client import AsyncStream, DockerGateway
from orqos.metrics.instruments import (
    EVENT_STREAM_RECONNECTS_TOTAL,
    EVENT_SUBSCRIBERS,
    EVENTS_PUBLISHED_TOTAL,
    EVENTS_RECEIVED_TOTAL,
)
from orqos.utils.concurrency import wait_for_stop

from .broadcast import BroadcastChannel, ChannelClosedError, NoSubscribersError

logger = get_logger("orqos.fanout")

# Why a relay pass ended.
DRAINED = "drained"  # subscribers left; go idle without backoff
FAILED = "failed"  # upstream failed or ended; back off
CLOSED = "closed"  # channel closed or stop requested; leave the task


def backoff_delay(attempt: int, max_exponent: int = 5) -> int:
    return 2 ** min(attempt, max_exponent)


class EventFanout:
    def __init__(
        self,
        docker: DockerGateway,
        channel: BroadcastChannel[str],
        idle_interval: float = 1.0,
        max_backoff_exponent: int = 5,
    ):
        self.docker = docker
        self.channel = channel
        self.idle_interval = idle_interval
        self.max_backoff_exponent = max_backoff_exponent
        self.attempt = 0
        self.state = "idle"
        self._stream: Optional[AsyncStream] = None

    async def run(self, stop_event: asyncio.Event) -> None:
        logger.info("event_fanout_started")
        try:
            while not stop_event.is_set() and not self.channel.closed:
                EVENT_SUBSCRIBERS.set(self.channel.receiver_count)
                if self.channel.receiver_count == 0:
                    self.state = "idle"
                    if await wait_for_stop(stop_event, self.idle_interval):
                        break
                    continue

                self.state = "active"
                try:
                    outcome = await self._relay(stop_event)
                except Exception:  # noqa: BLE001
                    logger.exception("event_relay_failed")
                    outcome = FAILED
                if outcome == CLOSED or stop_event.is_set():
                    break
                if outcome == DRAINED:
                    continue

                self.state = "backoff"
                self.attempt += 1
                EVENT_STREAM_RECONNECTS_TOTAL.inc()
                delay = backoff_delay(self.attempt, self.max_backoff_exponent)
                logger.info(
                    "event_stream_backoff",
                    extra={"attempt": self.attempt, "sleep_for": delay},
                )
                if await wait_for_stop(stop_event, delay):
                    break
        finally:
            self._close_stream()
            self.state = "stopped"
            logger.info("event_fanout_stopped")

    async def _relay(self, stop_event: asyncio.Event) -> str:
        """Pump one upstream subscription into the channel until it ends."""
        try:
            self._stream = await self.docker.subscribe_events()
        except GatewayError as e:
            logger.warning("event_subscribe_failed", extra={"error": str(e)})
            return FAILED

        logger.info("event_stream_opened")
        stop_wait = asyncio.ensure_future(stop_event.wait())
        next_event: Optional[asyncio.Future] = None
        try:
            while True:
                next_event = asyncio.ensure_future(self._stream.__anext__())
                done, _ = await asyncio.wait(
                    {next_event, stop_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if next_event not in done:
                    return CLOSED
                try:
                    event = next_event.result()
                except StopAsyncIteration:
                    logger.warning("event_stream_ended")
                    return FAILED
                except GatewayError as e:
                    logger.warning("event_stream_error", extra={"error": str(e)})
                    return FAILED

                self.attempt = 0
                EVENTS_RECEIVED_TOTAL.inc()
                outcome = self._publish(event)
                if outcome is not None:
                    return outcome
        finally:
            if next_event is not None and not next_event.done():
                next_event.cancel()
            stop_wait.cancel()
            self._close_stream()

    def _publish(self, event: Any) -> Optional[str]:
        """Publish one event; returns an outcome when relaying must end."""
        try:
            envelope = json.dumps(event, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("event_publish_failed", extra={"error": str(e)})
            return None
        try:
            self.channel.publish(envelope)
        except NoSubscribersError:
            logger.debug("event_dropped_no_subscribers")
            return DRAINED
        except ChannelClosedError:
            logger.info("event_channel_closed")
            return CLOSED
        EVENTS_PUBLISHED_TOTAL.inc()
        return None

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
