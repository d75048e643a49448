"""Configuration management for the firehose relay."""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from firehose_relay.models.data_models import SourceMode


JETSTREAM_URL = "wss://jetstream2.us-east.bsky.network/subscribe?wantedCollections=app.bsky.feed.post"
FIREHOSE_URL = "wss://bsky.network/xrpc/com.atproto.sync.subscribeRepos"


class EndpointConfig(BaseModel):
    """Configuration for a single upstream endpoint."""
    name: str = Field(description="Endpoint identifier")
    label: str = Field(description="Human readable name used in status messages")
    url: str = Field(description="WebSocket URL of the feed")
    mode: SourceMode = Field(description="Declared message format of the feed")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL scheme."""
        if not v.startswith(('ws://', 'wss://')):
            raise ValueError(f"URL must start with ws:// or wss://, got: {v}")
        return v


def _default_primary() -> EndpointConfig:
    return EndpointConfig(
        name="jetstream",
        label="JetStream",
        url=JETSTREAM_URL,
        mode=SourceMode.JSON_PRIMARY,
    )


def _default_fallback() -> EndpointConfig:
    return EndpointConfig(
        name="firehose",
        label="Bluesky Firehose",
        url=FIREHOSE_URL,
        mode=SourceMode.BINARY_PRIMARY,
    )


class RelayConfig(BaseModel):
    """Main relay configuration."""

    # Upstream endpoints
    primary: EndpointConfig = Field(default_factory=_default_primary, description="JSON feed tried first")
    fallback: EndpointConfig = Field(default_factory=_default_fallback, description="Binary feed used once after a primary error")

    # Upstream connection behaviour
    fallback_delay: float = Field(default=1.0, description="Delay before the one-shot fallback attempt")
    open_timeout: float = Field(default=10.0, description="WebSocket opening handshake timeout in seconds")
    close_timeout: float = Field(default=5.0, description="WebSocket closing handshake timeout in seconds")
    max_message_size: Optional[int] = Field(default=4 * 1024 * 1024, description="Largest accepted upstream frame")
    user_agent: str = Field(default="bsky-firehose-viewer/1.0.0", description="User-Agent sent upstream")

    # Downstream delivery
    send_timeout: float = Field(default=5.0, description="Seconds a subscriber may take to accept a frame")

    # Stats
    stats_interval: float = Field(default=1.0, description="Stats tick cadence in seconds")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    autostart: bool = Field(default=False, description="Connect upstream when the server starts")
    static_dir: str = Field(default="public", description="Directory with browser assets")
    locales_dir: str = Field(default="locales", description="Directory with <locale>.json translation files")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator('fallback_delay', 'stats_interval', 'open_timeout', 'close_timeout', 'send_timeout')
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError(f"duration must be positive, got: {v}")
        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"port must be between 1 and 65535, got: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"unknown log level: {v}")
        return level

    # Environment variable overrides
    @classmethod
    def env_overrides(cls) -> Dict:
        """Collect overrides from environment variables."""
        env_mappings = {
            "PORT": "port",
            "RELAY_HOST": "host",
            "RELAY_PORT": "port",
            "RELAY_LOG_LEVEL": "log_level",
            "RELAY_FALLBACK_DELAY": "fallback_delay",
            "RELAY_STATS_INTERVAL": "stats_interval",
            "RELAY_OPEN_TIMEOUT": "open_timeout",
            "RELAY_SEND_TIMEOUT": "send_timeout",
            "RELAY_USER_AGENT": "user_agent",
            "RELAY_STATIC_DIR": "static_dir",
            "RELAY_LOCALES_DIR": "locales_dir",
            "RELAY_AUTOSTART": "autostart",
        }

        overrides: Dict = {}
        for env_var, field_name in env_mappings.items():
            if env_var in os.environ:
                # pydantic coerces the string to the field type
                overrides[field_name] = os.environ[env_var]

        endpoint_urls = {
            "RELAY_PRIMARY_URL": "primary",
            "RELAY_FALLBACK_URL": "fallback",
        }
        for env_var, endpoint in endpoint_urls.items():
            if env_var in os.environ:
                overrides[f"{endpoint}_url"] = os.environ[env_var]

        return overrides


def _apply_overrides(config_dict: Dict, overrides: Dict) -> None:
    """Merge flat overrides into a config dict; `primary_url`/`fallback_url` patch the endpoints."""
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("primary_url", "fallback_url"):
            endpoint = key[: -len("_url")]
            current = config_dict.get(endpoint)
            if isinstance(current, EndpointConfig):
                current = current.model_dump()
            base = dict(current or getattr(RelayConfig(), endpoint).model_dump())
            base["url"] = value
            config_dict[endpoint] = base
        else:
            config_dict[key] = value


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else Path("config/config.yaml")
        self._config: Optional[RelayConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> RelayConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML.

        Args:
            cli_overrides: Optional dictionary of CLI flag overrides. The keys
                `primary_url` and `fallback_url` replace the endpoint URLs only.

        Returns:
            Fully merged RelayConfig instance

        Raises:
            pydantic.ValidationError: If configuration validation fails
        """
        config_dict: Dict = {}

        if self.config_file.exists():
            with open(self.config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config:
                    config_dict.update(yaml_config)

        _apply_overrides(config_dict, RelayConfig.env_overrides())

        if cli_overrides:
            _apply_overrides(config_dict, cli_overrides)

        self._config = RelayConfig(**config_dict)
        return self._config

    @property
    def config(self) -> RelayConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
