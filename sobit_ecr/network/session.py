"""Session state machine for the transaction service connection.

This layer is responsible for:
- Transport lifecycle (connect, receive loop, reconnect with backoff)
- Handshake confirmation and flushing of queued messages
- ACK bookkeeping in both directions
- Liveness probing
- Routing replies and errors to the callbacks of the operation they belong to

Every handler runs on the event loop that called :meth:`Session.send`, so no
two handlers touch the session state at the same time.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterator, Mapping
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Optional, Union

from pydantic import ValidationError

from sobit_ecr.config import ClientSettings, get_settings
from sobit_ecr.models import (
    Credentials,
    InboundData,
    Operation,
    OutboundMessage,
    operation_name,
)
from sobit_ecr.network.ack import AckTracker
from sobit_ecr.network.backoff import BackoffPolicy
from sobit_ecr.network.errors import (
    CONTINUABLE_ERRORS,
    LOCAL_ERROR_CODE,
    ErrorKind,
    SessionError,
    TransportNotReady,
)
from sobit_ecr.network.keepalive import KeepaliveMonitor
from sobit_ecr.network.pending import PendingQueue
from sobit_ecr.network.session_state import SessionState, SessionTracker
from sobit_ecr.network.timers import TimerHandle, Timers
from sobit_ecr.network.transport.base import BaseTransport, TransportClosed
from sobit_ecr.network.transport.dummy import DummyTransport
from sobit_ecr.network.transport.websocket import WebSocketTransport
from sobit_ecr.protocol import RawFrame, build_ack_frame, build_frame, encode_frame, parse_frame

LOGGER = logging.getLogger(__name__)

ResponseHandler = Callable[[Optional[str], Optional[str]], Union[Optional[bool], Awaitable[Optional[bool]]]]
ErrorHandler = Callable[[int, str], Union[Optional[bool], Awaitable[Optional[bool]]]]
ConnectHandler = Callable[[], Union[None, Awaitable[None]]]
TransportFactory = Callable[[ClientSettings, Mapping[str, str]], BaseTransport]


def default_transport_factory(settings: ClientSettings, headers: Mapping[str, str]) -> BaseTransport:
    if settings.transport == "dummy":
        return DummyTransport(settings, headers)
    return WebSocketTransport(settings, headers)


@dataclass
class Exchange:
    """An operation issued through :meth:`Session.send` and its callbacks."""

    message: OutboundMessage
    on_response: Optional[ResponseHandler] = None
    on_error: Optional[ErrorHandler] = None
    awaiting_response: bool = True


@dataclass
class Session:
    """Client side of one authenticated conversation with the service."""

    credentials: Credentials
    settings: ClientSettings = field(default_factory=get_settings)
    transport_factory: TransportFactory = default_transport_factory
    timers: Timers = field(default_factory=Timers)
    logger: logging.Logger = LOGGER
    backoff: Optional[BackoffPolicy] = None

    tracker: SessionTracker = field(default_factory=SessionTracker)
    last_error: Optional[SessionError] = field(default=None, init=False)

    _transport: Optional[BaseTransport] = field(default=None, init=False, repr=False)
    _receive_task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _backoff_timer: Optional[TimerHandle] = field(default=None, init=False, repr=False)
    _closed_event: Optional[asyncio.Event] = field(default=None, init=False, repr=False)
    _tasks: set[asyncio.Task[Any]] = field(default_factory=set, init=False, repr=False)
    _message_counter: Iterator[int] = field(default_factory=lambda: count(1), init=False, repr=False)
    _exchanges: list[Exchange] = field(default_factory=list, init=False, repr=False)
    _connect_handlers: list[ConnectHandler] = field(default_factory=list, init=False, repr=False)
    _reconnect: bool = field(default=False, init=False, repr=False)
    _close_after_ack: bool = field(default=False, init=False, repr=False)
    _flushing: bool = field(default=False, init=False, repr=False)
    _attempt: int = field(default=0, init=False, repr=False)
    _epoch: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.backoff is None:
            self.backoff = BackoffPolicy.from_settings(self.settings)
        self._pending = PendingQueue()
        self._acks = AckTracker(
            self.timers,
            self.settings.ack_retry_interval_seconds,
            self._resend_frame,
            logger=self.logger,
        )
        self._keepalive = KeepaliveMonitor(
            self.timers,
            self.settings.keepalive_interval_seconds,
            self._probe,
            self._on_peer_silent,
            logger=self.logger,
        )

    # -- introspection -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.tracker.state

    @property
    def reconnect(self) -> bool:
        return self._reconnect

    @property
    def transport(self) -> Optional[BaseTransport]:
        return self._transport

    @property
    def pending(self) -> PendingQueue:
        return self._pending

    @property
    def acks(self) -> AckTracker:
        return self._acks

    @property
    def keepalive(self) -> KeepaliveMonitor:
        return self._keepalive

    @property
    def exchanges(self) -> tuple[Exchange, ...]:
        return tuple(self._exchanges)

    @property
    def close_after_ack(self) -> bool:
        return self._close_after_ack

    def next_message_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._message_counter)}"

    # -- public operations ---------------------------------------------

    def send(
        self,
        op: Union[str, Operation],
        message: Optional[str] = None,
        on_response: Optional[ResponseHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
        *,
        correlation_id: Optional[str] = None,
        **fields: Any,
    ) -> OutboundMessage:
        """Queue an operation and make sure a connection is on its way.

        Must be called from the event loop that drives the session. Returns
        immediately; results surface through the callbacks.
        """

        name = operation_name(op)
        if correlation_id is None and fields.get("transaction_id") is not None:
            correlation_id = str(fields["transaction_id"])
        outbound = OutboundMessage(
            op=name,
            payload=message,
            fields=fields,
            correlation_id=correlation_id,
            id=self.next_message_id(name),
        )
        self._pending.enqueue(outbound)
        self._exchanges.append(
            Exchange(
                message=outbound,
                on_response=on_response,
                on_error=on_error,
                awaiting_response=not outbound.is_notify,
            )
        )
        self.logger.debug("Queued %s (pending=%s state=%s)", outbound.id, len(self._pending), self.state.value)

        state = self.state
        if state is SessionState.ACTIVE:
            self._spawn(self._flush(), name="session-flush")
            return outbound
        if on_connect is not None:
            self._connect_handlers.append(on_connect)
        if state in (SessionState.IDLE, SessionState.CLOSED):
            self._begin()
        return outbound

    async def close(self) -> None:
        """Cancel timers, close the transport and reset all queues.

        Calling it again once closed is a no-op.
        """

        if self.state in (SessionState.IDLE, SessionState.CLOSED):
            return
        self.logger.info("close")
        self._epoch += 1
        self._reconnect = False
        self._keepalive.stop()
        self._acks.cancel()
        if self._backoff_timer is not None:
            self._backoff_timer.cancel()
            self._backoff_timer = None
        transport, self._transport = self._transport, None
        self._receive_task = None
        self._pending.clear()
        self._exchanges.clear()
        self._connect_handlers.clear()
        self._close_after_ack = False
        self._try_transition(SessionState.CLOSED)
        if self._closed_event is not None:
            self._closed_event.set()

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()
        if transport is not None:
            await self._discard(transport)

    async def wait_closed(self) -> None:
        """Block (cooperatively) until the session reaches CLOSED."""

        if self.state in (SessionState.IDLE, SessionState.CLOSED) or self._closed_event is None:
            return
        await self._closed_event.wait()

    # -- connection lifecycle ------------------------------------------

    def _begin(self) -> None:
        self._reconnect = self.settings.reconnect
        self._attempt = 0
        self._close_after_ack = False
        self.last_error = None
        self._closed_event = asyncio.Event()
        self._epoch += 1
        self._try_transition(SessionState.CONNECTING)
        self._spawn(self._connect(), name="session-connect")

    async def _connect(self) -> None:
        epoch = self._epoch
        include_bearer = self._attempt == 0 or self.settings.reconnect_with_credentials
        transport = self.transport_factory(
            self.settings,
            self.credentials.headers(include_bearer=include_bearer),
        )
        self.logger.info("connect (attempt %s)", self._attempt + 1)
        try:
            await transport.connect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if epoch != self._epoch or self.state is not SessionState.CONNECTING:
                return
            await self._on_connect_failed(exc)
            return

        if epoch != self._epoch or self.state is not SessionState.CONNECTING:
            self.logger.debug("Session closed while connecting; discarding transport")
            await self._discard(transport)
            return

        self._transport = transport
        self._try_transition(SessionState.AUTHENTICATING)
        self.logger.info("onConnect")
        self._keepalive.start()
        self._receive_task = self._spawn(self._receive_loop(transport), name="session-receive")

    async def _on_connect_failed(self, exc: Exception) -> None:
        self.logger.warning("Connection unsuccessful: %s", exc)
        if self._attempt > 0 and self._reconnect:
            await self._schedule_reconnect()
            return
        await self._report(
            ErrorKind.TRANSPORT_CONNECT_FAILURE,
            LOCAL_ERROR_CODE,
            f"Connection unsuccessful ({exc})",
        )

    async def _schedule_reconnect(self) -> None:
        self._attempt += 1
        if self.backoff.exhausted(self._attempt):
            await self._report(
                ErrorKind.TRANSPORT_CONNECT_FAILURE,
                LOCAL_ERROR_CODE,
                "Reconnect attempts exhausted",
            )
            return
        delay = self.backoff.delay(self._attempt)
        self._try_transition(SessionState.RECONNECTING)
        self.logger.warning("Reconnecting in %.2fs (attempt %s)", delay, self._attempt)
        self._backoff_timer = self.timers.call_later(delay, self._reconnect_now, name="session-reconnect")

    async def _reconnect_now(self) -> None:
        self._backoff_timer = None
        if self.state is not SessionState.RECONNECTING:
            return
        self._try_transition(SessionState.CONNECTING)
        await self._connect()

    async def _receive_loop(self, transport: BaseTransport) -> None:
        try:
            while transport is self._transport:
                raw = await transport.receive()
                await self.handle_frame(raw)
        except asyncio.CancelledError:
            self.logger.debug("Session receive loop cancelled")
            raise
        except (TransportClosed, TransportNotReady) as exc:
            # The peer may close while an ack for its last frame is being written.
            await self._on_transport_closed(transport, exc)
        except Exception as exc:  # noqa: BLE001
            if transport is not self._transport:
                return
            await self._report(
                ErrorKind.TRANSPORT_RUNTIME_ERROR,
                LOCAL_ERROR_CODE,
                f"WebSocket error: {exc}",
            )

    async def _on_transport_closed(self, transport: BaseTransport, reason: Exception) -> None:
        if transport is not self._transport:
            return
        self.logger.info("onClose: %s", reason)
        self._keepalive.stop()
        self._acks.suspend()
        self._transport = None
        receive_task, self._receive_task = self._receive_task, None
        if receive_task is not None and receive_task is not asyncio.current_task():
            receive_task.cancel()
        if not self._reconnect:
            await self.close()
            return
        await self._schedule_reconnect()

    async def _on_peer_silent(self) -> None:
        transport = self._transport
        if transport is None:
            return
        error = SessionError.for_kind(
            ErrorKind.PEER_SILENT,
            LOCAL_ERROR_CODE,
            "Peer did not answer liveness probe",
        )
        self.last_error = error
        # Informational only: the handlers cannot veto the reconnect.
        await self._notify_error(error)
        if transport is not self._transport:
            return
        await self._on_transport_closed(transport, error)
        self._spawn(self._discard(transport), name="transport-close")

    async def _discard(self, transport: BaseTransport) -> None:
        try:
            await transport.close()
        except Exception:  # noqa: BLE001
            self.logger.debug("Suppress transport close error", exc_info=True)

    async def _probe(self) -> Awaitable[object]:
        transport = self._transport
        if transport is None:
            raise TransportNotReady("Transport has not been initialised")
        return await transport.ping()

    # -- inbound -------------------------------------------------------

    async def handle_frame(self, raw: RawFrame) -> None:
        """Process one frame received from the transport."""

        self.logger.debug("Message: %s", raw)
        try:
            envelope = parse_frame(raw)
        except ValidationError as exc:
            self.logger.debug("Unparseable frame: %s", exc)
            await self._report(ErrorKind.MALFORMED_MESSAGE, LOCAL_ERROR_CODE, "Error parsing message")
            return

        if envelope.error is not None:
            await self._report(ErrorKind.REMOTE_ERROR, envelope.error.code, envelope.error.message)
            return

        data = envelope.data
        if data is None:
            self.logger.warning("Ignoring frame without data: %s", raw)
            return

        if data.op == Operation.ACK.value:
            await self._handle_ack(data.message)
            return

        if data.uuid:
            await self._send_frame(encode_frame(build_ack_frame(data.uuid)))

        if data.op == Operation.CONNECTION_ESTABLISHED.value:
            await self._handle_established()
            return

        await self._deliver(data)

    async def _handle_established(self) -> None:
        if self.state is not SessionState.AUTHENTICATING:
            self.logger.debug("Ignoring handshake confirmation in state %s", self.state.value)
            return
        self._try_transition(SessionState.ACTIVE)
        self._attempt = 0
        self.logger.info("Connection established")
        handlers, self._connect_handlers = self._connect_handlers, []
        for handler in handlers:
            await self._call(handler)
        if self.state is not SessionState.ACTIVE:
            return
        await self._acks.resume()
        await self._flush()

    async def _handle_ack(self, correlation_id: Optional[str]) -> None:
        message = self._acks.acknowledge(correlation_id)
        if message is None:
            return
        self._exchanges = [item for item in self._exchanges if item.message.id != message.id]
        if self._close_after_ack and await self._finish_if_idle():
            return
        await self._flush()

    async def _deliver(self, data: InboundData) -> None:
        exchange = self._match(data)
        if exchange is None:
            if any(item.awaiting_response for item in self._exchanges):
                self.logger.warning(
                    "Dropping unmatched reply op=%s transaction_id=%s",
                    data.op,
                    data.transaction_id,
                )
                return
            await self._finish_if_idle()
            return

        finished = True
        if exchange.on_response is not None:
            result = await self._call(exchange.on_response, data.message, data.op)
            if result is None:
                finished = (
                    data.op == Operation.COMPLETE_TRANSACTION.value and exchange.message.is_transaction
                )
            else:
                finished = bool(result)
        if not finished:
            return
        if exchange in self._exchanges:
            self._exchanges.remove(exchange)
        await self._finish_if_idle()

    def _match(self, data: InboundData) -> Optional[Exchange]:
        awaiting = [item for item in self._exchanges if item.awaiting_response]
        if data.transaction_id is not None:
            for item in awaiting:
                if item.message.correlation_id == data.transaction_id:
                    return item
            awaiting = [item for item in awaiting if item.message.correlation_id is None]
        return awaiting[0] if awaiting else None

    async def _finish_if_idle(self) -> bool:
        if self.state is not SessionState.ACTIVE:
            return False
        if self._pending or self._acks.outstanding is not None:
            return False
        if any(item.awaiting_response for item in self._exchanges):
            return False
        # Local acks are awaited before delivery, so nothing is left to drain.
        self._try_transition(SessionState.CLOSING)
        await self.close()
        return True

    # -- outbound ------------------------------------------------------

    async def _flush(self) -> None:
        if self._flushing or self.state is not SessionState.ACTIVE:
            return
        self._flushing = True
        try:
            await self._pending.flush(self._dispatch, hold=self._hold)
        except (TransportClosed, TransportNotReady) as exc:
            self.logger.debug("Flush interrupted: %s", exc)
        except Exception as exc:  # noqa: BLE001
            await self._report(
                ErrorKind.TRANSPORT_RUNTIME_ERROR,
                LOCAL_ERROR_CODE,
                f"WebSocket error: {exc}",
            )
        finally:
            self._flushing = False

    def _hold(self, message: OutboundMessage) -> bool:
        return message.requires_ack and self._acks.outstanding is not None

    async def _dispatch(self, message: OutboundMessage) -> None:
        frame = encode_frame(build_frame(message))
        if not message.requires_ack:
            await self._send_frame(frame)
            return
        # Tracked before the write so an ack arriving mid-send is matched.
        self._close_after_ack = True
        self._acks.arm(message, frame)
        try:
            await self._send_frame(frame)
        except BaseException:
            self._acks.disarm()
            raise

    async def _send_frame(self, frame: str) -> None:
        transport = self._transport
        if transport is None or not transport.is_open or self.state is SessionState.CLOSED:
            raise TransportNotReady("Transport has not been initialised")
        await transport.send(frame)

    async def _resend_frame(self, frame: str) -> None:
        try:
            await self._send_frame(frame)
        except (TransportClosed, TransportNotReady) as exc:
            self.logger.debug("Resend skipped: %s", exc)

    # -- errors and callbacks ------------------------------------------

    async def _report(self, kind: ErrorKind, code: int, message: str) -> None:
        error = SessionError.for_kind(kind, code, message)
        self.last_error = error
        self._reconnect = False
        self.logger.warning("Session error kind=%s code=%s: %s", kind.value, code, message)
        results = await self._notify_error(error)
        if kind in CONTINUABLE_ERRORS and results and all(result is False for result in results):
            self.logger.info("Error handler kept the session open")
            return
        await self.close()

    async def _notify_error(self, error: SessionError) -> list[Any]:
        handlers: list[ErrorHandler] = []
        for exchange in self._exchanges:
            if exchange.on_error is not None and exchange.on_error not in handlers:
                handlers.append(exchange.on_error)
        results = []
        for handler in handlers:
            results.append(await self._call(handler, error.code, error.message))
        return results

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception:  # noqa: BLE001
            self.logger.exception("Session callback %r failed", fn)
            return None

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Session task %s failed", task.get_name(), exc_info=exc)

    def _try_transition(self, state: SessionState) -> None:
        try:
            self.tracker.transition(state)
        except ValueError:
            self.logger.debug(
                "Ignoring invalid session transition %s -> %s",
                self.state.value,
                state.value,
            )
