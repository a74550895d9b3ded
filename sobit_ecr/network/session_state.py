"""Connection state tracking for a session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class SessionState(enum.Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    AUTHENTICATING = "AUTHENTICATING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    RECONNECTING = "RECONNECTING"
    CLOSED = "CLOSED"


_ALLOWED = {
    SessionState.IDLE: {SessionState.CONNECTING},
    SessionState.CONNECTING: {
        SessionState.AUTHENTICATING,
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    },
    SessionState.AUTHENTICATING: {
        SessionState.ACTIVE,
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    },
    SessionState.ACTIVE: {
        SessionState.CLOSING,
        SessionState.RECONNECTING,
        SessionState.CLOSED,
    },
    SessionState.CLOSING: {SessionState.CLOSED},
    SessionState.RECONNECTING: {SessionState.CONNECTING, SessionState.CLOSED},
    SessionState.CLOSED: {SessionState.CONNECTING},
}


@dataclass
class SessionTracker:
    """Current state plus transition validation."""

    state: SessionState = SessionState.IDLE
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: SessionState) -> None:
        """Move the session into a new state, validating allowed transitions."""

        if not self.is_valid_transition(self.state, next_state):
            raise ValueError(f"Invalid transition {self.state.value} -> {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    @staticmethod
    def is_valid_transition(current: SessionState, nxt: SessionState) -> bool:
        return nxt in _ALLOWED.get(current, set())
