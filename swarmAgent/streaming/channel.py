"""Ordered event channel for one orchestration cycle.

Producers call ``emit`` (never blocks); one consumer iterates with
``async for``. Events come out in the order they were emitted, so each
agent's chunk sequence stays in order while chunks of concurrent agents may
interleave between chunks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from swarmAgent.schema import StreamEvent

LOGGER = logging.getLogger(__name__)

_CLOSED = object()

Listener = Callable[[StreamEvent], None]


class EventChannel:
    """Single-consumer async channel of ``StreamEvent``.

    Args:
        record: keep every emitted event in ``history`` (useful for callers
            that inspect the cycle afterwards instead of streaming it)
        listener: optional synchronous callback invoked for each event
        queue: buffer events for ``async for``; turn it off when the channel
            is only recorded or observed, since nobody would drain the buffer
    """

    def __init__(self, record: bool = False, listener: Optional[Listener] = None, queue: bool = True):
        self._queue: Optional[asyncio.Queue] = asyncio.Queue() if queue else None
        self._closed = False
        self._record = record
        self._listener = listener
        self.history: List[StreamEvent] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: StreamEvent) -> None:
        if self._closed:
            LOGGER.debug(f"Dropping {event.type.value} event on closed channel")
            return
        if self._record:
            self.history.append(event)
        if self._listener is not None:
            self._listener(event)
        if self._queue is not None:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            if self._queue is not None:
                self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        if self._queue is None:
            raise RuntimeError("EventChannel was created with queue=False and cannot be iterated")
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
