"""
In-process one-to-many event fan-out.

A single processing task drains the input queue and copies every published
event to each listener that was registered when ``publish`` was called.

Each listener owns a bounded buffer. When a listener falls behind, the oldest
event in its buffer is dropped and a warning is logged, so a stalled client
never blocks the publisher or the other listeners.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import AsyncIterator, Generic, Optional, TypeVar

import structlog

from tt.core.exceptions import BroadcasterClosed

T = TypeVar("T")

DEFAULT_BUFFER_SIZE = 16

_CLOSED = object()
_ids = itertools.count(1)


class ListenerClosed(Exception):
    """Raised by Listener.get() once the listener is closed and drained."""


class Listener(Generic[T]):
    """A single consumer's delivery endpoint."""

    __slots__ = ("id", "dropped", "_queue", "_closed")

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self.id = next(_ids)
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(buffer_size, 1))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, item: T) -> bool:
        """Queue item, evicting the oldest on overflow. False if one was evicted."""
        evicted = False
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            evicted = True
        self._queue.put_nowait(item)
        return not evicted

    def _close(self) -> bool:
        """Mark closed behind any queued events. False if one was evicted for the marker."""
        if self._closed:
            return True
        self._closed = True
        return self._deliver(_CLOSED)

    async def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Wait for the next event.

        Returns None if ``timeout`` seconds pass with nothing to read. Raises
        ListenerClosed once the listener has been closed and everything queued
        before the close has been read.
        """
        if self._closed and self._queue.empty():
            raise ListenerClosed()

        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

        if item is _CLOSED:
            raise ListenerClosed()
        return item

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.get()
            except ListenerClosed:
                return


class Broadcaster(Generic[T]):
    """
    Fan events out to every registered listener.

    Registration, unregistration and fan-out all run on the event loop and
    never suspend while touching the listener list, so the list cannot change
    part way through a broadcast.
    """

    def __init__(
        self,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        log: Optional[structlog.typing.FilteringBoundLogger] = None,
    ) -> None:
        self._buffer_size = buffer_size
        self._log = log or structlog.get_logger("tt.broadcast")
        self._listeners: list[Listener[T]] = []
        self._input: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the processing task. Must be called from a running event loop."""
        if self._closed:
            raise BroadcasterClosed()
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="tt-broadcaster")

    async def _run(self) -> None:
        while True:
            item = await self._input.get()
            if item is _CLOSED:
                return
            event, recipients = item
            self._broadcast(event, recipients)

    def _broadcast(self, event: T, recipients: tuple[Listener[T], ...]) -> None:
        for listener in recipients:
            if listener.closed:
                continue
            if not listener._deliver(event):
                self._dropped(listener)

    def _dropped(self, listener: Listener[T], closing: bool = False) -> None:
        self._log.warning(
            "broadcast.dropped_oldest",
            listener=listener.id,
            dropped=listener.dropped,
            closing=closing,
        )

    def _close(self, listener: Listener[T]) -> None:
        if not listener._close():
            self._dropped(listener, closing=True)

    def register(self) -> Listener[T]:
        """Add and return a new listener for future events."""
        if self._closed:
            raise BroadcasterClosed()

        listener: Listener[T] = Listener(self._buffer_size)
        self._listeners.append(listener)
        self._log.debug("broadcast.listener_added", listener=listener.id, total=len(self._listeners))
        return listener

    def unregister(self, listener: Listener[T]) -> None:
        """Remove and close a listener. Unknown or already removed listeners are ignored."""
        for i, candidate in enumerate(self._listeners):
            if candidate is listener:
                self._listeners[i] = self._listeners[-1]
                self._listeners.pop()
                self._close(listener)
                self._log.debug(
                    "broadcast.listener_removed", listener=listener.id, total=len(self._listeners)
                )
                return

    def publish(self, event: T) -> None:
        """Queue event for every listener registered right now."""
        if self._closed:
            raise BroadcasterClosed()
        self._input.put_nowait((event, tuple(self._listeners)))

    async def shutdown(self) -> None:
        """Stop accepting events, finish queued ones, then close every listener."""
        if self._closed:
            return
        self._closed = True

        if self._task is not None:
            self._input.put_nowait(_CLOSED)
            await self._task
            self._task = None

        for listener in self._listeners:
            self._close(listener)
        self._listeners.clear()
        self._log.info("broadcast.shutdown")
