"""In-memory transport for offline runs and tests."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Mapping, Optional, Union

from sobit_ecr.network.transport.base import BaseTransport, TransportClosed

LOGGER = logging.getLogger(__name__)

_CLOSED = object()


class DummyTransport(BaseTransport):
    """Loopback transport: records outbound frames, inbound frames are fed in.

    ``auto_pong`` answers liveness probes immediately; set it to ``False`` to
    emulate a silently dead peer. ``connect_error`` makes :meth:`connect` fail.
    """

    def __init__(
        self,
        settings: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        auto_pong: bool = True,
        connect_error: Optional[Exception] = None,
    ) -> None:
        self._settings = settings
        self.headers = dict(headers or {})
        self.auto_pong = auto_pong
        self.connect_error = connect_error
        self.sent: list[str] = []
        self.pings = 0
        self.connected = False
        self.closed = False
        self._inbox: Optional[asyncio.Queue[Any]] = None

    @property
    def is_open(self) -> bool:
        return self.connected and not self.closed

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    async def connect(self) -> None:
        LOGGER.debug("Dummy transport connect()")
        if self.connect_error is not None:
            raise self.connect_error
        self._inbox = asyncio.Queue()
        self.connected = True

    async def send(self, frame: str) -> None:
        if not self.is_open:
            raise TransportClosed("Dummy transport closed")
        LOGGER.debug("Dummy transport send(): %s", frame)
        self.sent.append(frame)

    async def receive(self) -> Union[str, bytes]:
        if self._inbox is None:
            raise TransportClosed("Dummy transport not connected")
        item = await self._inbox.get()
        if item is _CLOSED:
            raise TransportClosed("Dummy transport closed")
        return item

    async def ping(self) -> Awaitable[object]:
        if not self.is_open:
            raise TransportClosed("Dummy transport closed")
        self.pings += 1
        waiter: asyncio.Future[float] = asyncio.get_running_loop().create_future()
        if self.auto_pong:
            waiter.set_result(0.0)
        return waiter

    async def close(self) -> None:
        LOGGER.debug("Dummy transport close()")
        self.drop()

    def feed(self, frame: Union[str, bytes, Mapping[str, Any]]) -> None:
        """Queue an inbound frame; mappings are JSON-encoded."""

        if self._inbox is None:
            raise TransportClosed("Dummy transport not connected")
        if isinstance(frame, Mapping):
            frame = json.dumps(frame)
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        """Emulate the connection going away."""

        if self.closed:
            return
        self.closed = True
        if self._inbox is not None:
            self._inbox.put_nowait(_CLOSED)
