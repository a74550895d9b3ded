"""Client facade exposing the service operations on top of a session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from sobit_ecr.config import ClientSettings, get_settings
from sobit_ecr.models import Credentials, Operation, OutboundMessage
from sobit_ecr.network.session import (
    ConnectHandler,
    ErrorHandler,
    ResponseHandler,
    Session,
    TransportFactory,
    default_transport_factory,
)
from sobit_ecr.network.session_state import SessionState
from sobit_ecr.tokens import generate_token

LOGGER = logging.getLogger(__name__)


@dataclass
class EcrClient:
    """Terminal operations against the transaction service.

    All operations return immediately and must be called from a running event
    loop; use :meth:`execute` to run a single exchange from synchronous code.
    """

    credentials: Credentials
    settings: ClientSettings = field(default_factory=get_settings)
    transport_factory: TransportFactory = default_transport_factory
    logger: logging.Logger = LOGGER

    session: Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.session = Session(
            credentials=self.credentials,
            settings=self.settings,
            transport_factory=self.transport_factory,
            logger=self.logger,
        )

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None, **kwargs: Any) -> EcrClient:
        settings = settings or get_settings()
        return cls(Credentials.from_settings(settings), settings=settings, **kwargs)

    @staticmethod
    def generate_token(length: int = 64) -> str:
        return generate_token(length)

    @property
    def state(self) -> SessionState:
        return self.session.state

    def start_transaction(
        self,
        message: str,
        transaction_id: str,
        on_response: Optional[ResponseHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
    ) -> OutboundMessage:
        """Ask the terminal to start a payment; answered by ``complete_transaction``."""

        return self.session.send(
            Operation.START_TRANSACTION,
            message,
            on_response,
            on_error,
            on_connect,
            transaction_id=transaction_id,
        )

    def cancel_transaction(
        self,
        transaction_id: str,
        message: Optional[str] = None,
        on_response: Optional[ResponseHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
    ) -> OutboundMessage:
        return self.session.send(
            Operation.CANCEL_TRANSACTION,
            message,
            on_response,
            on_error,
            on_connect,
            transaction_id=transaction_id,
        )

    def notify_group(
        self,
        message: str,
        group: str,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
    ) -> OutboundMessage:
        """Notify every device of ``group``; the session closes once delivery is acked."""

        return self.session.send(Operation.NOTIFY_GROUP, message, None, on_error, on_connect, group=group)

    def notify(
        self,
        message: str,
        device: str,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
    ) -> OutboundMessage:
        return self.session.send(Operation.NOTIFY, message, None, on_error, on_connect, identifier=device)

    def send(
        self,
        op: Union[str, Operation],
        message: Optional[str] = None,
        on_response: Optional[ResponseHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
        **fields: Any,
    ) -> OutboundMessage:
        return self.session.send(op, message, on_response, on_error, on_connect, **fields)

    async def close(self) -> None:
        await self.session.close()

    async def wait_closed(self) -> None:
        await self.session.wait_closed()

    def execute(
        self,
        op: Union[str, Operation],
        message: Optional[str] = None,
        on_response: Optional[ResponseHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
        *,
        timeout: Optional[float] = None,
        **fields: Any,
    ) -> None:
        """Run one exchange on a fresh event loop, blocking until the session closes."""

        async def _run() -> None:
            self.session.send(op, message, on_response, on_error, on_connect, **fields)
            try:
                if timeout:
                    await asyncio.wait_for(self.session.wait_closed(), timeout=timeout)
                else:
                    await self.session.wait_closed()
            finally:
                await self.session.close()

        asyncio.run(_run())
