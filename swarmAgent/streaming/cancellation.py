"""Cancellation token and the cancellable-call helper used around every specialist call."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from swarmAgent.utils.error_handler import AgentTimeoutError, CancellationError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Caller-owned abort signal, threaded down to every in-flight call of a cycle."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            LOGGER.info(f"Cancellation requested: {reason}")

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, partial_output: str = "") -> None:
        if self.is_cancelled:
            raise CancellationError(self.reason or "Cancelled by caller", partial_output=partial_output)


async def _drain(task: asyncio.Future) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def run_cancellable(
    awaitable: Awaitable[T],
    token: Optional[CancellationToken] = None,
    timeout: Optional[float] = None,
) -> T:
    """Await ``awaitable`` unless the token fires or ``timeout`` seconds pass.

    Raises:
        CancellationError: the token was cancelled first
        AgentTimeoutError: the timeout elapsed first
    """
    task = asyncio.ensure_future(awaitable)
    if token is not None and token.is_cancelled:
        await _drain(task)
        raise CancellationError(token.reason or "Cancelled by caller")

    waiters = {task}
    cancel_waiter: Optional[asyncio.Future] = None
    if token is not None:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _drain(task)
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    await _drain(task)
    if cancel_waiter is not None and cancel_waiter in done:
        raise CancellationError(token.reason or "Cancelled by caller")
    raise AgentTimeoutError(f"Call exceeded the {timeout}s timeout", "AI 响应超时，请重试")
