"""Event sinks that carry progress events to a client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from schemas.events import ProgressEvent


logger = logging.getLogger(__name__)

SSE_CONNECTED = ": connected\n\n"


class QueueEventSink:
    """Queue-backed sink consumed by an SSE response.

    The producer (the orchestrator task) calls :meth:`send`; the response
    iterates :meth:`frames`. Once closed, either by the consumer going away or
    by a terminal event being delivered, further sends are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)
        if event.terminal:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE text, starting with a comment frame to flush proxies."""
        yield SSE_CONNECTED
        try:
            async for event in self.events():
                yield event.to_sse()
        finally:
            if not self._closed:
                logger.info("SSE client disconnected before a terminal event")
            self.close()


class ListEventSink:
    """Collects events in memory; used for non-HTTP callers and tests."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []
        self.closed = False

    async def send(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        self.events.append(event)

    def close(self) -> None:
        self.closed = True

    @property
    def names(self) -> list[str]:
        return [event.event for event in self.events]
