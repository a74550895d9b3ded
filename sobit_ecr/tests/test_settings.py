from pathlib import Path

import pytest
from pydantic import ValidationError

from sobit_ecr.config import ClientSettings


def test_defaults():
    settings = ClientSettings(_env_file=None)
    assert settings.endpoint_url == "wss://connect.sobitecr.com"
    assert settings.reconnect is True
    assert settings.reconnect_delay_seconds == 10.0
    assert settings.reconnect_max_attempts == 10
    assert settings.ack_retry_interval_seconds == 1.0
    assert settings.keepalive_interval_seconds == 1.0
    assert settings.token_dir == Path("./temp")
    assert settings.transport == "websocket"


def test_yaml_file_and_environment_are_merged(tmp_path, monkeypatch):
    config = tmp_path / "client.yaml"
    config.write_text(
        "endpoint_url: wss://example.test/ecr\nreconnect_delay_seconds: 3\nlog_level: debug\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SOBIT_ECR_CONFIG_FILE", str(config))
    monkeypatch.setenv("SOBIT_ECR_KEEPALIVE_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("SOBIT_ECR_API_KEY", "from-env")

    settings = ClientSettings(_env_file=None, identifier="pos-1")

    assert settings.endpoint_url == "wss://example.test/ecr"
    assert settings.reconnect_delay_seconds == 3.0
    assert settings.keepalive_interval_seconds == 2.5
    assert settings.api_key == "from-env"
    assert settings.identifier == "pos-1"
    assert settings.log_level == "DEBUG"
    assert settings.config_path == config


def test_json_config_file_is_supported(tmp_path, monkeypatch):
    config = tmp_path / "client.json"
    config.write_text('{"reconnect": false, "transport": "dummy"}', encoding="utf-8")
    monkeypatch.setenv("SOBIT_ECR_CONFIG_FILE", str(config))

    settings = ClientSettings(_env_file=None)
    assert settings.reconnect is False
    assert settings.transport == "dummy"


def test_config_file_must_hold_a_mapping(tmp_path, monkeypatch):
    config = tmp_path / "client.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("SOBIT_ECR_CONFIG_FILE", str(config))

    with pytest.raises(ValueError, match="mapping"):
        ClientSettings(_env_file=None)


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        ClientSettings(_env_file=None, reconnect_delay_seconds=0)
    with pytest.raises(ValidationError):
        ClientSettings(_env_file=None, reconnect_jitter=2.0)
    with pytest.raises(ValidationError):
        ClientSettings(_env_file=None, transport="carrier-pigeon")
