"""WebSocket transport implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Mapping, Optional, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from sobit_ecr.config import ClientSettings
from sobit_ecr.network.transport.base import BaseTransport, TransportClosed

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """WebSocket-based transport; liveness probing is driven by the session."""

    def __init__(self, settings: ClientSettings, headers: Mapping[str, str]) -> None:
        self._settings = settings
        self._headers = dict(headers)
        self._ws: Optional[ClientConnection] = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> None:
        LOGGER.info("Connecting to %s", self._settings.endpoint_url)
        self._ws = await connect(
            self._settings.endpoint_url,
            additional_headers=self._headers,
            open_timeout=self._settings.connect_timeout_seconds,
            ping_interval=None,
        )

    async def send(self, frame: str) -> None:
        if not self._ws:
            raise TransportClosed("WebSocket transport not connected")
        LOGGER.debug("WebSocket send: %s", frame)
        try:
            await self._ws.send(frame)
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc

    async def receive(self) -> Union[str, bytes]:
        if not self._ws:
            raise TransportClosed("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc
        LOGGER.debug("WebSocket receive: %s", raw)
        return raw

    async def ping(self) -> Awaitable[object]:
        if not self._ws:
            raise TransportClosed("WebSocket transport not connected")
        try:
            waiter = await self._ws.ping()
        except ConnectionClosed as exc:
            raise TransportClosed(str(exc)) from exc
        return asyncio.ensure_future(waiter)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws:
            LOGGER.info("Closing WebSocket transport")
            await ws.close()
