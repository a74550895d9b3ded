import base64
import json

import pytest
from pydantic import ValidationError

from sobit_ecr.models import Credentials, Operation, OutboundMessage, bearer_credential
from sobit_ecr.protocol import build_ack_frame, build_frame, encode_frame, parse_frame


def test_build_frame_without_ack_has_no_uuid():
    message = OutboundMessage(
        Operation.START_TRANSACTION,
        "payload",
        {"transaction_id": "T1"},
        correlation_id="T1",
    )
    assert message.op == "start_transaction"
    assert build_frame(message) == {
        "data": {"op": "start_transaction", "transaction_id": "T1", "message": "payload"}
    }


def test_build_frame_for_stamped_notify_carries_uuid():
    message = OutboundMessage("notify", "hi", {"identifier": "device-1"}).stamped("u-9")
    assert message.is_notify
    assert build_frame(message)["data"] == {
        "op": "notify",
        "identifier": "device-1",
        "message": "hi",
        "uuid": "u-9",
    }


def test_encode_frame_is_compact_single_line():
    encoded = encode_frame(build_ack_frame("u-1"))
    assert encoded == '{"data":{"op":"ack","message":"u-1"}}'
    assert encode_frame({"data": {"message": "čau"}}) == '{"data":{"message":"čau"}}'


def test_parse_frame_reads_data_and_errors():
    envelope = parse_frame(
        json.dumps({"data": {"op": "complete_transaction", "transaction_id": "T1", "message": "{}", "extra": 1}})
    )
    assert envelope.error is None
    assert envelope.data.op == "complete_transaction"
    assert envelope.data.transaction_id == "T1"
    assert envelope.data.model_extra == {"extra": 1}

    error = parse_frame(b'{"error":{"code":4,"message":"bad credentials"}}')
    assert (error.error.code, error.error.message) == (4, "bad credentials")


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"error": {"code": "x"}}'])
def test_parse_frame_rejects_malformed_input(raw):
    with pytest.raises(ValidationError):
        parse_frame(raw)


def test_outbound_message_is_immutable():
    message = OutboundMessage("echo", "x", {"a": 1})
    with pytest.raises(TypeError):
        message.fields["a"] = 2
    with pytest.raises(AttributeError):
        message.payload = "y"


def test_credentials_headers():
    credentials = Credentials("key", "pos-1", "secret")
    expected = base64.b64encode(b"pos-1 secret").decode("ascii")
    assert bearer_credential("pos-1", "secret") == expected
    assert credentials.headers() == {"X-Api-Key": "key", "Authorization": f"Bearer {expected}"}
    assert credentials.headers(include_bearer=False) == {"X-Api-Key": "key"}
    assert Credentials("key").headers() == {"X-Api-Key": "key"}
    assert Credentials("key", "pos-1").has_bearer is False
    assert "secret" not in repr(credentials)


def test_credentials_from_settings_requires_api_key(make_settings):
    with pytest.raises(ValueError, match="API key not set"):
        Credentials.from_settings(make_settings(api_key=None))
    credentials = Credentials.from_settings(make_settings(identifier="pos-1", token="t"))
    assert credentials == Credentials("key", "pos-1", "t")
