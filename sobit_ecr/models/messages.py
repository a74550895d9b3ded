"""Local message and credential types."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional

from sobit_ecr.models.envelope import NOTIFY_OPERATIONS, TRANSACTION_OPERATIONS, Operation


def operation_name(op: str | Operation) -> str:
    return op.value if isinstance(op, Operation) else str(op)


def bearer_credential(identifier: str, token: str) -> str:
    """Encode the identifier/token pair as sent after ``Bearer``."""

    return base64.b64encode(f"{identifier} {token}".encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class OutboundMessage:
    """A logical message queued for delivery; immutable once constructed."""

    op: str
    payload: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None
    requires_ack: bool = False
    id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", operation_name(self.op))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def is_notify(self) -> bool:
        return self.op in NOTIFY_OPERATIONS

    @property
    def is_transaction(self) -> bool:
        return self.op in TRANSACTION_OPERATIONS

    def stamped(self, correlation_id: str) -> OutboundMessage:
        """Return a copy carrying a delivery correlation id that must be acknowledged."""

        return replace(self, correlation_id=correlation_id, requires_ack=True)


@dataclass(frozen=True)
class Credentials:
    """API key plus the optional identifier/token pair used for the bearer header."""

    api_key: str
    identifier: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)

    @property
    def has_bearer(self) -> bool:
        return bool(self.identifier and self.token)

    def headers(self, *, include_bearer: bool = True) -> dict[str, str]:
        headers = {"X-Api-Key": self.api_key}
        if include_bearer and self.has_bearer:
            headers["Authorization"] = f"Bearer {bearer_credential(self.identifier, self.token)}"
        return headers

    @classmethod
    def from_settings(cls, settings: Any) -> Credentials:
        if not settings.api_key:
            raise ValueError("API key not set")
        return cls(api_key=settings.api_key, identifier=settings.identifier, token=settings.token)
