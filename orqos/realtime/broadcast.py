"""Bounded multi-subscriber broadcast channel.

Messages live in a fixed-size ring shared by every subscriber. Each
subscriber keeps its own cursor (a global sequence number), so slow
subscribers never hold back the publisher or each other: once a cursor
falls behind the oldest retained message the subscriber is told how many
messages it missed and resumes from the oldest one still in the ring.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, Generic, Set, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 100

_EMPTY = object()


class BroadcastError(Exception):
    pass


class NoSubscribersError(BroadcastError):
    """Raised by ``publish`` when nobody is subscribed; the message is dropped."""


class LaggedError(BroadcastError):
    def __init__(self, missed: int):
        super().__init__(f"subscriber lagged behind by {missed} messages")
        self.missed = missed


class ChannelClosedError(BroadcastError):
    pass


class BroadcastChannel(Generic[T]):
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._ring: Deque[Tuple[int, T]] = deque(maxlen=capacity)
        self._next_seq = 0
        self._subscribers: Set["Subscription[T]"] = set()
        self._wakeup = asyncio.Event()
        self._closed = False

    @property
    def receiver_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> "Subscription[T]":
        """Receive every message published from now on."""
        if self._closed:
            raise ChannelClosedError("channel is closed")
        sub = Subscription(self, self._next_seq)
        self._subscribers.add(sub)
        return sub

    def publish(self, message: T) -> int:
        """Append ``message`` to the ring and wake waiting subscribers.

        Returns the number of subscribers that will see it.
        """
        if self._closed:
            raise ChannelClosedError("channel is closed")
        if not self._subscribers:
            raise NoSubscribersError("no active subscribers")
        self._ring.append((self._next_seq, message))
        self._next_seq += 1
        self._notify()
        return len(self._subscribers)

    def close(self) -> None:
        """Stop accepting messages; subscribers drain what is left, then see closed."""
        self._closed = True
        self._notify()

    def _notify(self) -> None:
        self._wakeup.set()
        self._wakeup = asyncio.Event()

    def _unsubscribe(self, sub: "Subscription[T]") -> None:
        self._subscribers.discard(sub)


class Subscription(Generic[T]):
    def __init__(self, channel: BroadcastChannel[T], cursor: int):
        self._channel = channel
        self._cursor = cursor
        self._active = True

    def _poll(self):
        if not self._active:
            raise ChannelClosedError("subscription is closed")
        ring = self._channel._ring
        if ring:
            oldest = ring[0][0]
            if self._cursor < oldest:
                missed = oldest - self._cursor
                self._cursor = oldest
                raise LaggedError(missed)
            if self._cursor < self._channel._next_seq:
                _, message = ring[self._cursor - oldest]
                self._cursor += 1
                return message
        if self._channel._closed:
            raise ChannelClosedError("channel is closed")
        return _EMPTY

    async def recv(self) -> T:
        """Wait for the next message.

        Raises ``LaggedError`` once when messages were overwritten before this
        subscriber read them, and ``ChannelClosedError`` when drained and closed or
        once this subscription has been closed.
        """
        while True:
            wakeup = self._channel._wakeup
            message = self._poll()
            if message is not _EMPTY:
                return message
            await wakeup.wait()

    @property
    def pending(self) -> int:
        return max(self._channel._next_seq - self._cursor, 0)

    def close(self) -> None:
        if self._active:
            self._active = False
            self._channel._unsubscribe(self)
            # wake a recv() parked on this subscription
            self._channel._notify()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
