"""Transport abstractions for the service connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Union


class TransportClosed(RuntimeError):
    """Raised when the transport is closed, locally or by the peer."""


class BaseTransport(ABC):
    """Abstract secure duplex transport carrying text frames."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, frame: str) -> None:
        """Write one frame; returns once the frame was handed to the network."""

    @abstractmethod
    async def receive(self) -> Union[str, bytes]:
        """Return the next frame or raise :class:`TransportClosed`."""

    @abstractmethod
    async def ping(self) -> Awaitable[object]:
        """Send a liveness probe and return an awaitable resolved by the pong."""

    @abstractmethod
    async def close(self) -> None:
        ...
