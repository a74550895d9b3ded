"""Timer service on top of the running asyncio loop.

Callbacks may be plain callables or coroutine functions; every callback runs
on the loop that scheduled it, so handlers never execute concurrently.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

LOGGER = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[Awaitable[None], None]]


class TimerHandle:
    """Handle returned by :class:`Timers`; cancelling twice is a no-op."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: Optional[asyncio.Task[None]] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._cancelled and self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        task = self._task
        # A timer may cancel itself from inside its own callback.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()


class Timers:
    """Schedule-once / schedule-periodic / cancel."""

    def call_later(self, delay: float, callback: TimerCallback, *, name: str = "timer") -> TimerHandle:
        handle = TimerHandle(name)

        async def _once() -> None:
            await asyncio.sleep(delay)
            if handle.cancelled:
                return
            await self._invoke(handle, callback)

        handle._task = asyncio.get_running_loop().create_task(_once(), name=name)
        return handle

    def call_periodic(self, interval: float, callback: TimerCallback, *, name: str = "periodic-timer") -> TimerHandle:
        handle = TimerHandle(name)

        async def _every() -> None:
            while not handle.cancelled:
                await asyncio.sleep(interval)
                if handle.cancelled:
                    return
                await self._invoke(handle, callback)

        handle._task = asyncio.get_running_loop().create_task(_every(), name=name)
        return handle

    @staticmethod
    async def _invoke(handle: TimerHandle, callback: TimerCallback) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            LOGGER.exception("Timer %s callback failed", handle.name)
