from .envelope import (
    NOTIFY_OPERATIONS,
    TRANSACTION_OPERATIONS,
    InboundData,
    InboundEnvelope,
    Operation,
    RemoteErrorBody,
)
from .messages import Credentials, OutboundMessage, bearer_credential, operation_name

__all__ = [
    "NOTIFY_OPERATIONS",
    "TRANSACTION_OPERATIONS",
    "InboundData",
    "InboundEnvelope",
    "Operation",
    "RemoteErrorBody",
    "Credentials",
    "OutboundMessage",
    "bearer_credential",
    "operation_name",
]
