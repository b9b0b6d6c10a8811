"""Tests for the logging setup and secret scrubbing."""

import json
import logging

import structlog

from toolbridge.core.logging import get_logger, secret_scrubbing_processor, setup_logging


def test_masks_top_level_secrets():
    event = secret_scrubbing_processor(None, "info", {"event": "call", "token": "abc", "Password": "pw"})
    assert event == {"event": "call", "token": "***", "Password": "***"}


def test_masks_nested_secrets():
    event = secret_scrubbing_processor(
        None,
        "info",
        {
            "event": "call",
            "arguments": {"domain": "t.auth0.com", "token": "abc", "items": [{"client_secret": "x"}]},
        },
    )
    assert event["arguments"] == {
        "domain": "t.auth0.com",
        "token": "***",
        "items": [{"client_secret": "***"}],
    }


def test_leaves_other_values_alone():
    event = {"event": "Tool invoked", "tool": "echo", "latency_ms": 3}
    assert secret_scrubbing_processor(None, "info", dict(event)) == event


def test_json_logs_go_to_stderr(capsys):
    setup_logging("INFO", json_logs=True)
    try:
        get_logger("toolbridge.test").info("Tool invoked", tool="echo", token="abc")
        captured = capsys.readouterr()
        assert captured.out == ""
        record = json.loads(captured.err.strip().splitlines()[-1])
        assert record["event"] == "Tool invoked"
        assert record["tool"] == "echo"
        assert record["token"] == "***"
        assert record["level"] == "info"
    finally:
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()


def test_level_filtering(capsys):
    setup_logging("WARNING", json_logs=True)
    try:
        logger = get_logger("toolbridge.test.level")
        logger.info("hidden")
        logger.warning("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err
    finally:
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()
