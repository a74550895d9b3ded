"""Periodic liveness probe and peer-silence detection."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from sobit_ecr.network.timers import TimerHandle, Timers

LOGGER = logging.getLogger(__name__)


class KeepaliveMonitor:
    """Two-state latch per tick: a probe must be answered before the next tick."""

    def __init__(
        self,
        timers: Timers,
        interval: float,
        probe: Callable[[], Awaitable[Awaitable[object]]],
        on_silent: Callable[[], Awaitable[None]],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._timers = timers
        self._interval = interval
        self._probe = probe
        self._on_silent = on_silent
        self._log = logger or LOGGER
        self._timer: Optional[TimerHandle] = None
        self._confirmed = False
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def confirmed(self) -> bool:
        return self._confirmed

    def start(self) -> None:
        self.stop()
        self._generation += 1
        self._confirmed = True
        self._timer = self._timers.call_periodic(self._interval, self._tick, name="keepalive")

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None

    def confirm(self) -> None:
        self._log.debug("pong")
        self._confirmed = True

    async def _tick(self) -> None:
        if not self._confirmed:
            self._log.warning("Liveness response not received within %.2fs", self._interval)
            self.stop()
            await self._on_silent()
            return
        self._log.debug("ping")
        self._confirmed = False
        generation = self._generation
        try:
            waiter = await self._probe()
        except Exception as exc:  # noqa: BLE001
            # Left unconfirmed; the next tick treats the peer as silent.
            self._log.warning("Liveness probe failed: %s", exc)
            return
        asyncio.ensure_future(waiter).add_done_callback(
            lambda future: self._on_pong(future, generation)
        )

    def _on_pong(self, future: asyncio.Future[object], generation: int) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        if generation != self._generation or self._timer is None:
            return
        self.confirm()
