"""FIFO of outbound messages waiting for an established connection."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from typing import Awaitable, Callable, Deque, Iterator, Optional

from sobit_ecr.models import OutboundMessage

LOGGER = logging.getLogger(__name__)


def _new_correlation_id() -> str:
    return str(uuid.uuid4())


class PendingQueue:
    """Ordered queue of not-yet-sent messages.

    Notify-class messages get a fresh correlation id and ``requires_ack`` the
    first time they reach the head of the queue during a flush.
    """

    def __init__(self, id_factory: Callable[[], str] = _new_correlation_id) -> None:
        self._queue: Deque[OutboundMessage] = deque()
        self._id_factory = id_factory

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[OutboundMessage]:
        return iter(list(self._queue))

    def enqueue(self, message: OutboundMessage) -> None:
        self._queue.append(message)

    def peek(self) -> Optional[OutboundMessage]:
        return self._queue[0] if self._queue else None

    def clear(self) -> None:
        self._queue.clear()

    def _prepare_head(self) -> OutboundMessage:
        message = self._queue[0]
        if message.is_notify and not message.requires_ack:
            message = message.stamped(self._id_factory())
            self._queue[0] = message
        return message

    async def flush(
        self,
        send: Callable[[OutboundMessage], Awaitable[None]],
        *,
        hold: Optional[Callable[[OutboundMessage], bool]] = None,
    ) -> int:
        """Send queued messages in order, removing each once it was written.

        Stops early when ``hold`` returns true for the head message. A message
        whose send raises stays at the head and the exception propagates.
        """

        sent = 0
        while self._queue:
            message = self._prepare_head()
            if hold is not None and hold(message):
                LOGGER.debug("Holding %s until the outstanding ack resolves", message.id)
                break
            await send(message)
            if not self._queue or self._queue[0] is not message:
                # Queue was reset while the frame was being written.
                break
            self._queue.popleft()
            sent += 1
        return sent
