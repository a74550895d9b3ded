"""Helpers for building, encoding and parsing wire frames."""

from __future__ import annotations

import json
from typing import Any, Dict, Union

from sobit_ecr.models import InboundEnvelope, Operation, OutboundMessage

Frame = Dict[str, Any]
RawFrame = Union[str, bytes]


def build_frame(message: OutboundMessage) -> Frame:
    """Construct the ``{"data": {...}}`` object for an outbound message."""

    data: Dict[str, Any] = {"op": message.op}
    data.update(message.fields)
    data["message"] = message.payload
    if message.requires_ack and message.correlation_id:
        data["uuid"] = message.correlation_id
    return {"data": data}


def build_ack_frame(correlation_id: str) -> Frame:
    """Build the frame acknowledging a peer frame that carried ``uuid``."""

    return {"data": {"op": Operation.ACK.value, "message": correlation_id}}


def encode_frame(frame: Frame) -> str:
    """Serialise a frame as a single-line JSON text."""

    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def parse_frame(raw: RawFrame) -> InboundEnvelope:
    """Validate and parse a raw inbound frame.

    Raises ``pydantic.ValidationError`` for text that is not JSON or does not
    match the envelope shape.
    """

    return InboundEnvelope.model_validate_json(raw)
