"""Unit tests for StructuredLogger."""

import json
import logging

from firehose_relay.monitoring.logger import StructuredLogger


def records(caplog, name):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == name]


def test_events_are_json_lines(caplog):
    logger = StructuredLogger(name="firehose_relay.test.json", level="DEBUG")

    with caplog.at_level(logging.DEBUG, logger="firehose_relay.test.json"):
        logger.upstream_connect(endpoint="jetstream", url="ws://primary.test/subscribe")
        logger.fallback_scheduled(endpoint="firehose", delay=1.0)

    assert records(caplog, "firehose_relay.test.json") == [
        {"event": "upstream_connect", "endpoint": "jetstream", "url": "ws://primary.test/subscribe"},
        {"event": "fallback_scheduled", "endpoint": "firehose", "delay": 1.0},
    ]


def test_levels(caplog):
    logger = StructuredLogger(name="firehose_relay.test.levels", level="DEBUG")

    with caplog.at_level(logging.DEBUG, logger="firehose_relay.test.levels"):
        logger.upstream_error(endpoint="jetstream", error="refused")
        logger.broadcast_failed(kind="event", error="gone")
        logger.decode_failure(source_mode="json-primary", error="bad", size=3)
        logger.message_failed(endpoint="jetstream", error="boom")

    levels = [r.levelno for r in caplog.records if r.name == "firehose_relay.test.levels"]
    assert levels == [logging.ERROR, logging.WARNING, logging.DEBUG, logging.ERROR]


def test_level_filtering(caplog):
    logger = StructuredLogger(name="firehose_relay.test.filter", level="WARNING")

    with caplog.at_level(logging.WARNING, logger="firehose_relay.test.filter"):
        logger.subscriber_added(subscribers=1)
        logger.stats_tick(events_per_second=3, bytes_per_second=300)
        logger.unknown_command(command="restart")

    assert records(caplog, "firehose_relay.test.filter") == [
        {"event": "unknown_command", "command": "restart"},
    ]


def test_non_serializable_values_are_stringified(caplog):
    logger = StructuredLogger(name="firehose_relay.test.default")

    with caplog.at_level(logging.INFO, logger="firehose_relay.test.default"):
        logger.log("custom", error=ValueError("boom"))

    assert records(caplog, "firehose_relay.test.default") == [{"event": "custom", "error": "boom"}]
