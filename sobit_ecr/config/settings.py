"""Client configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import Field, PositiveFloat, PositiveInt
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/sobit-ecr/client.yaml"),
    Path("/etc/sobit-ecr/client.yml"),
    Path("./config/client.yaml"),
    Path("./config/client.yml"),
)


class ClientSettings(BaseSettings):
    """Validated settings for the ECR session client."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="SOBIT_ECR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection + identity
    endpoint_url: str = Field(
        default="wss://connect.sobitecr.com",
        description="Secure WebSocket endpoint of the transaction service.",
    )
    api_key: str | None = Field(
        default=None,
        description="Value sent in the X-Api-Key header.",
        repr=False,
    )
    identifier: str | None = Field(
        default=None,
        description="Cash register identifier used for the bearer credential.",
    )
    token: str | None = Field(
        default=None,
        description="Secret paired with the identifier in the bearer credential.",
        repr=False,
    )
    transport: Literal["dummy", "websocket"] = Field(
        default="websocket",
        description="Transport implementation to use.",
    )
    connect_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds allowed for the opening handshake of the transport.",
    )

    # Reliability
    reconnect: bool = Field(
        default=True,
        description="Reconnect automatically when the connection drops unexpectedly.",
    )
    reconnect_delay_seconds: PositiveFloat = Field(
        default=10.0,
        description="Delay before the first reconnect attempt.",
    )
    reconnect_max_attempts: PositiveInt | None = Field(
        default=10,
        description="Consecutive reconnect attempts before giving up; null for unlimited.",
    )
    reconnect_multiplier: float = Field(
        default=1.0,
        ge=1.0,
        description="Growth factor applied to the delay on each consecutive attempt.",
    )
    reconnect_max_delay_seconds: PositiveFloat = Field(
        default=60.0,
        description="Upper bound for the reconnect delay.",
    )
    reconnect_jitter: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Jitter factor applied to reconnect delays (0.0-1.0).",
    )
    reconnect_with_credentials: bool = Field(
        default=True,
        description="Send the bearer credential on reconnect attempts as well as the first connect.",
    )
    ack_retry_interval_seconds: PositiveFloat = Field(
        default=1.0,
        description="Interval between retransmissions of an unacknowledged frame.",
    )
    keepalive_interval_seconds: PositiveFloat = Field(
        default=1.0,
        description="Liveness probe period; a probe left unanswered for one period drops the connection.",
    )

    # Token helper
    token_dir: Path = Field(
        default=Path("./temp"),
        description="Directory holding one persisted token file per identifier.",
    )
    token_length: PositiveInt = Field(
        default=64,
        description="Length of generated tokens.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the client process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[ClientSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._yaml_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_settings_source(settings_cls: type[ClientSettings] | None = None) -> Dict[str, Any]:
        for path in ClientSettings._resolve_candidate_paths():
            data = ClientSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("SOBIT_ECR_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read client config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid client config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Client config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> ClientSettings:
    """Return memoized client settings."""

    settings = ClientSettings()
    settings.token_dir = settings.token_dir.expanduser().resolve()
    return settings
