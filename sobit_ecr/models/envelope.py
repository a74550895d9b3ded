"""Wire models for frames exchanged with the transaction service."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Operation(str, Enum):
    """Operation names carried in ``data.op``."""

    START_TRANSACTION = "start_transaction"
    CANCEL_TRANSACTION = "cancel_transaction"
    COMPLETE_TRANSACTION = "complete_transaction"
    NOTIFY = "notify"
    NOTIFY_GROUP = "notify_group"
    ACK = "ack"
    CONNECTION_ESTABLISHED = "connection_established"


# Targets are not directly connected devices; delivery is confirmed by an ack.
NOTIFY_OPERATIONS = frozenset({Operation.NOTIFY.value, Operation.NOTIFY_GROUP.value})

# Request/response operations answered by a single complete_transaction reply.
TRANSACTION_OPERATIONS = frozenset(
    {Operation.START_TRANSACTION.value, Operation.CANCEL_TRANSACTION.value}
)


class RemoteErrorBody(BaseModel):
    code: int
    message: str


class InboundData(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    op: Optional[str] = None
    message: Optional[str] = None
    uuid: Optional[str] = None
    transaction_id: Optional[str] = None


class InboundEnvelope(BaseModel):
    """A single frame received from the service, parsed fresh per frame."""

    model_config = ConfigDict(extra="allow")

    error: Optional[RemoteErrorBody] = None
    data: Optional[InboundData] = None
