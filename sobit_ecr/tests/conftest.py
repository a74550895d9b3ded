from typing import Any, Mapping

import pytest

from sobit_ecr.config import ClientSettings
from sobit_ecr.network.transport.dummy import DummyTransport


class TransportRecorder:
    """Transport factory handing out DummyTransports; ``options[n]`` configures the n-th one."""

    def __init__(self) -> None:
        self.created: list[DummyTransport] = []
        self.options: list[dict[str, Any]] = []
        self.transport_cls: type[DummyTransport] = DummyTransport

    def __call__(self, settings: ClientSettings, headers: Mapping[str, str]) -> DummyTransport:
        index = len(self.created)
        kwargs = self.options[index] if index < len(self.options) else {}
        transport = self.transport_cls(settings, headers, **kwargs)
        self.created.append(transport)
        return transport


@pytest.fixture
def make_settings():
    def _make(**overrides: Any) -> ClientSettings:
        values: dict[str, Any] = {
            "api_key": "key",
            "transport": "dummy",
            "reconnect_delay_seconds": 0.02,
            "ack_retry_interval_seconds": 5.0,
            "keepalive_interval_seconds": 5.0,
        }
        values.update(overrides)
        return ClientSettings(_env_file=None, **values)

    return _make


@pytest.fixture
def transports() -> TransportRecorder:
    return TransportRecorder()
