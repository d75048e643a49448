"""Pytest configuration and shared fixtures."""

import pytest

from firehose_relay.models.config import EndpointConfig, RelayConfig
from firehose_relay.models.data_models import SourceMode
from tests.fixtures.sample_data import FALLBACK_URL, PRIMARY_URL


@pytest.fixture
def relay_config():
    """Provide a configuration pointing at fake upstream endpoints."""
    return RelayConfig(
        primary=EndpointConfig(
            name="jetstream",
            label="JetStream",
            url=PRIMARY_URL,
            mode=SourceMode.JSON_PRIMARY,
        ),
        fallback=EndpointConfig(
            name="firehose",
            label="Bluesky Firehose",
            url=FALLBACK_URL,
            mode=SourceMode.BINARY_PRIMARY,
        ),
        fallback_delay=1.0,
        stats_interval=60.0,
        log_level="WARNING",
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove relay environment overrides so config tests see only their inputs."""
    for name in (
        "PORT", "RELAY_HOST", "RELAY_PORT", "RELAY_LOG_LEVEL", "RELAY_FALLBACK_DELAY",
        "RELAY_STATS_INTERVAL", "RELAY_OPEN_TIMEOUT", "RELAY_SEND_TIMEOUT", "RELAY_USER_AGENT",
        "RELAY_STATIC_DIR", "RELAY_LOCALES_DIR", "RELAY_AUTOSTART",
        "RELAY_PRIMARY_URL", "RELAY_FALLBACK_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
