"""Unit tests for configuration management."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from firehose_relay.models.config import (
    FIREHOSE_URL,
    JETSTREAM_URL,
    ConfigManager,
    EndpointConfig,
    RelayConfig,
)
from firehose_relay.models.data_models import SourceMode


SAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def test_relay_config_defaults():
    """Test that RelayConfig has correct default values."""
    config = RelayConfig()

    # Upstream endpoints
    assert config.primary.url == JETSTREAM_URL
    assert config.primary.label == "JetStream"
    assert config.primary.mode == SourceMode.JSON_PRIMARY
    assert config.fallback.url == FIREHOSE_URL
    assert config.fallback.label == "Bluesky Firehose"
    assert config.fallback.mode == SourceMode.BINARY_PRIMARY

    # Connection behaviour
    assert config.fallback_delay == 1.0
    assert config.open_timeout == 10.0
    assert config.stats_interval == 1.0
    assert config.send_timeout == 5.0

    # Server
    assert config.host == "0.0.0.0"
    assert config.port == 3000
    assert config.autostart is False
    assert config.log_level == "INFO"


def test_endpoint_config_validation():
    """Test endpoint URL validation."""
    endpoint = EndpointConfig(name="local", label="Local", url="ws://localhost:6008/subscribe",
                              mode="json-primary")
    assert endpoint.mode == SourceMode.JSON_PRIMARY

    with pytest.raises(ValidationError):
        EndpointConfig(name="bad", label="Bad", url="https://example.com/feed", mode="json-primary")

    with pytest.raises(ValidationError):
        EndpointConfig(name="bad", label="Bad", url="ws://example.com", mode="protobuf")


@pytest.mark.parametrize("field", ["fallback_delay", "stats_interval", "open_timeout", "close_timeout", "send_timeout"])
def test_durations_must_be_positive(field):
    with pytest.raises(ValidationError):
        RelayConfig(**{field: 0})


def test_port_range():
    with pytest.raises(ValidationError):
        RelayConfig(port=70000)


def test_log_level_is_normalized():
    assert RelayConfig(log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError):
        RelayConfig(log_level="verbose")


def test_load_from_yaml(tmp_path, clean_env):
    """Test loading configuration from a YAML file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "port": 8080,
        "fallback_delay": 2.5,
        "primary": {
            "name": "local",
            "label": "Local JetStream",
            "url": "ws://localhost:6008/subscribe",
            "mode": "json-primary",
        },
    }))

    config = ConfigManager(config_file).load_config()

    assert config.port == 8080
    assert config.fallback_delay == 2.5
    assert config.primary.label == "Local JetStream"
    assert config.fallback.url == FIREHOSE_URL


def test_missing_file_uses_defaults(tmp_path, clean_env):
    config = ConfigManager(tmp_path / "absent.yaml").load_config()
    assert config == RelayConfig()


def test_empty_yaml_uses_defaults(tmp_path, clean_env):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    assert ConfigManager(config_file).load_config().port == 3000


def test_env_overrides_yaml(tmp_path, clean_env):
    """Test that environment variables override YAML values."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({"port": 8080, "autostart": False}))
    clean_env.setenv("RELAY_PORT", "9000")
    clean_env.setenv("RELAY_AUTOSTART", "true")
    clean_env.setenv("RELAY_FALLBACK_DELAY", "0.5")
    clean_env.setenv("RELAY_SEND_TIMEOUT", "2.5")

    config = ConfigManager(config_file).load_config()

    assert config.port == 9000
    assert config.autostart is True
    assert config.fallback_delay == 0.5
    assert config.send_timeout == 2.5


def test_port_env_variable(tmp_path, clean_env):
    clean_env.setenv("PORT", "4000")

    config = ConfigManager(tmp_path / "absent.yaml").load_config()

    assert config.port == 4000


def test_env_endpoint_url_keeps_other_fields(tmp_path, clean_env):
    clean_env.setenv("RELAY_FALLBACK_URL", "ws://localhost:7000/firehose")

    config = ConfigManager(tmp_path / "absent.yaml").load_config()

    assert config.fallback.url == "ws://localhost:7000/firehose"
    assert config.fallback.label == "Bluesky Firehose"
    assert config.fallback.mode == SourceMode.BINARY_PRIMARY


def test_cli_overrides_env(tmp_path, clean_env):
    """Test precedence: CLI > ENV > YAML."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({"port": 8080, "log_level": "ERROR"}))
    clean_env.setenv("RELAY_PORT", "9000")

    config = ConfigManager(config_file).load_config({
        "port": 9100,
        "log_level": None,
        "primary_url": "ws://localhost:6008/subscribe",
    })

    assert config.port == 9100
    assert config.log_level == "ERROR"
    assert config.primary.url == "ws://localhost:6008/subscribe"
    assert config.primary.label == "JetStream"


def test_invalid_override_raises(tmp_path, clean_env):
    with pytest.raises(ValidationError):
        ConfigManager(tmp_path / "absent.yaml").load_config({"primary_url": "http://not-a-socket"})


def test_config_property_loads_lazily(tmp_path, clean_env):
    manager = ConfigManager(tmp_path / "absent.yaml")

    assert manager.config is manager.config
    assert manager.config.port == 3000


def test_sample_config_file_is_valid(clean_env):
    config = ConfigManager(SAMPLE_CONFIG).load_config()

    assert config.primary.mode == SourceMode.JSON_PRIMARY
    assert config.fallback.mode == SourceMode.BINARY_PRIMARY
