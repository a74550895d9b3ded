import asyncio
import base64
import json

import pytest
from websockets.asyncio.server import serve

from sobit_ecr.models import Credentials
from sobit_ecr.network.session import Session
from sobit_ecr.network.session_state import SessionState
from sobit_ecr.network.transport import TransportClosed, WebSocketTransport


async def _wait_for(predicate, *, timeout: float = 2.0, interval: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.mark.asyncio
async def test_session_over_real_websocket(make_settings):
    seen_headers = []
    received = []

    async def handler(connection):
        seen_headers.append(connection.request.headers)
        await connection.send(json.dumps({"data": {"op": "connection_established"}}))
        frame = json.loads(await connection.recv())
        received.append(frame)
        await connection.send(
            json.dumps(
                {
                    "data": {
                        "op": "complete_transaction",
                        "transaction_id": frame["data"]["transaction_id"],
                        "message": '{"Result":"0"}',
                    }
                }
            )
        )
        await connection.wait_closed()

    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        settings = make_settings(transport="websocket", endpoint_url=f"ws://127.0.0.1:{port}")
        session = Session(Credentials("key", "pos-1", "secret"), settings=settings)
        responses = []

        session.send("start_transaction", "payload", lambda message, op: responses.append(message), transaction_id="T1")
        assert await _wait_for(lambda: session.state is SessionState.CLOSED)

    assert received == [{"data": {"op": "start_transaction", "transaction_id": "T1", "message": "payload"}}]
    assert responses == ['{"Result":"0"}']
    headers = seen_headers[0]
    assert headers["X-Api-Key"] == "key"
    bearer = base64.b64encode(b"pos-1 secret").decode("ascii")
    assert headers["Authorization"] == f"Bearer {bearer}"


@pytest.mark.asyncio
async def test_websocket_transport_reports_peer_close(make_settings):
    async def handler(connection):
        await connection.close()

    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        transport = WebSocketTransport(make_settings(endpoint_url=f"ws://127.0.0.1:{port}"), {"X-Api-Key": "key"})
        await transport.connect()
        with pytest.raises(TransportClosed):
            await transport.receive()
        assert not transport.is_open
        await transport.close()


@pytest.mark.asyncio
async def test_websocket_transport_requires_connection(make_settings):
    transport = WebSocketTransport(make_settings(), {})
    assert not transport.is_open
    with pytest.raises(TransportClosed):
        await transport.send("{}")
