"""Network stack (transport/session) for the transaction service connection."""

from sobit_ecr.network.ack import AckTracker
from sobit_ecr.network.backoff import BackoffPolicy
from sobit_ecr.network.keepalive import KeepaliveMonitor
from sobit_ecr.network.pending import PendingQueue
from sobit_ecr.network.session import Exchange, Session
from sobit_ecr.network.session_state import SessionState, SessionTracker
from sobit_ecr.network.timers import TimerHandle, Timers
from sobit_ecr.network.transport import BaseTransport, DummyTransport, TransportClosed, WebSocketTransport

__all__ = [
    "AckTracker",
    "BackoffPolicy",
    "KeepaliveMonitor",
    "PendingQueue",
    "Exchange",
    "Session",
    "SessionState",
    "SessionTracker",
    "TimerHandle",
    "Timers",
    "BaseTransport",
    "DummyTransport",
    "TransportClosed",
    "WebSocketTransport",
]
