"""Retransmission of frames that require a peer acknowledgment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sobit_ecr.models import OutboundMessage
from sobit_ecr.network.timers import TimerHandle, Timers

LOGGER = logging.getLogger(__name__)


@dataclass
class PendingAck:
    message: OutboundMessage
    frame: str
    attempts: int = 0


class AckTracker:
    """Tracks zero-or-one unacknowledged message and resends it until acked."""

    def __init__(
        self,
        timers: Timers,
        interval: float,
        resend: Callable[[str], Awaitable[None]],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._timers = timers
        self._interval = interval
        self._resend = resend
        self._log = logger or LOGGER
        self._pending: Optional[PendingAck] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def outstanding(self) -> Optional[OutboundMessage]:
        return self._pending.message if self._pending else None

    @property
    def retrying(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    def arm(self, message: OutboundMessage, frame: str) -> None:
        if self._pending is not None:
            raise RuntimeError(f"Ack already outstanding for {self._pending.message.id}")
        self._log.debug("Tracking ack for message %s uuid=%s", message.id, message.correlation_id)
        self._pending = PendingAck(message=message, frame=frame)
        self._start_timer()

    def acknowledge(self, correlation_id: Optional[str] = None) -> Optional[OutboundMessage]:
        """Stop retransmission; returns the acknowledged message, if it matched."""

        pending = self._pending
        if pending is None:
            self._log.debug("Received ack for unknown message %s", correlation_id)
            return None
        expected = pending.message.correlation_id
        if correlation_id and expected and correlation_id != expected:
            self._log.debug("Ignoring ack for %s while waiting for %s", correlation_id, expected)
            return None
        self._stop_timer()
        self._pending = None
        self._log.info("Ack received for message %s after %s resends", pending.message.id, pending.attempts)
        return pending.message

    def suspend(self) -> None:
        """Pause retransmission while no transport is available; keep the message."""

        self._stop_timer()

    async def resume(self) -> None:
        """Resend the tracked frame on a fresh transport and restart retransmission."""

        if self._pending is None:
            return
        self._log.info("Resending unacknowledged message %s after reconnect", self._pending.message.id)
        self._start_timer()
        await self._resend(self._pending.frame)

    def disarm(self) -> None:
        """Forget the tracked message without reporting it; it was never written."""

        self._stop_timer()
        self._pending = None

    def cancel(self) -> None:
        self._stop_timer()
        if self._pending is not None:
            self._log.warning("Dropping unacknowledged message %s", self._pending.message.id)
        self._pending = None

    def _start_timer(self) -> None:
        self._stop_timer()
        self._timer = self._timers.call_periodic(self._interval, self._retransmit, name="ack-retry")

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None

    async def _retransmit(self) -> None:
        pending = self._pending
        if pending is None:
            return
        pending.attempts += 1
        self._log.warning("Resending message %s (attempt %s)", pending.message.id, pending.attempts)
        await self._resend(pending.frame)
