"""Error taxonomy surfaced through ``on_error(code, message)``."""

from __future__ import annotations

import enum

LOCAL_ERROR_CODE = -1


class ErrorKind(enum.Enum):
    TRANSPORT_CONNECT_FAILURE = "transport_connect_failure"
    TRANSPORT_RUNTIME_ERROR = "transport_runtime_error"
    MALFORMED_MESSAGE = "malformed_message"
    REMOTE_ERROR = "remote_error"
    PEER_SILENT = "peer_silent"


# The connection may still be usable after these, so a handler may keep it open.
CONTINUABLE_ERRORS = frozenset({ErrorKind.REMOTE_ERROR, ErrorKind.MALFORMED_MESSAGE})


class SessionError(RuntimeError):
    """Base class for errors reported by a session."""

    kind: ErrorKind

    def __init__(self, message: str, *, code: int = LOCAL_ERROR_CODE) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @classmethod
    def for_kind(cls, kind: ErrorKind, code: int, message: str) -> SessionError:
        error_cls = _ERRORS_BY_KIND[kind]
        return error_cls(message, code=code)


class TransportConnectFailure(SessionError):
    """Raised when the transport could not be opened."""

    kind = ErrorKind.TRANSPORT_CONNECT_FAILURE


class TransportRuntimeError(SessionError):
    """Raised when an open transport fails."""

    kind = ErrorKind.TRANSPORT_RUNTIME_ERROR


class MalformedMessage(SessionError):
    """Raised when an inbound frame cannot be parsed."""

    kind = ErrorKind.MALFORMED_MESSAGE


class RemoteError(SessionError):
    """Raised when the peer answers with an error envelope."""

    kind = ErrorKind.REMOTE_ERROR


class PeerSilent(SessionError):
    """Raised when a liveness probe goes unanswered."""

    kind = ErrorKind.PEER_SILENT


class TransportNotReady(RuntimeError):
    """Raised when IO is invoked without an established transport."""


_ERRORS_BY_KIND = {
    ErrorKind.TRANSPORT_CONNECT_FAILURE: TransportConnectFailure,
    ErrorKind.TRANSPORT_RUNTIME_ERROR: TransportRuntimeError,
    ErrorKind.MALFORMED_MESSAGE: MalformedMessage,
    ErrorKind.REMOTE_ERROR: RemoteError,
    ErrorKind.PEER_SILENT: PeerSilent,
}
