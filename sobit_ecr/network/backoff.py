"""Reconnect backoff policy."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay before reconnect attempt ``n`` (1-based).

    With ``multiplier == 1`` the delay is fixed; ``max_attempts`` of ``None``
    retries forever.
    """

    interval: float = 10.0
    max_attempts: Optional[int] = None
    multiplier: float = 1.0
    max_interval: float = 60.0
    jitter: float = 0.0

    @classmethod
    def from_settings(cls, settings: Any) -> BackoffPolicy:
        return cls(
            interval=settings.reconnect_delay_seconds,
            max_attempts=settings.reconnect_max_attempts,
            multiplier=settings.reconnect_multiplier,
            max_interval=settings.reconnect_max_delay_seconds,
            jitter=settings.reconnect_jitter,
        )

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt > self.max_attempts

    def delay(self, attempt: int) -> float:
        base = min(self.max_interval, self.interval * (self.multiplier ** max(attempt - 1, 0)))
        if not self.jitter:
            return base
        jitter_factor = random.uniform(1 - self.jitter, 1 + self.jitter)
        return max(0.0, base * jitter_factor)
