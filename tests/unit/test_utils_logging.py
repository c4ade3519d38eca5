from __future__ import annotations

import json

import pytest
import structlog

from adbrecord.utils.logging import bind_context, clear_contextvars, setup_logging


def test_setup_logging_produces_json(capsys: pytest.CaptureFixture[str]) -> None:
    """Configure logging and verify that structlog outputs JSON via JSONRenderer."""
    setup_logging()
    log = structlog.get_logger()
    log.info("hello", foo=123)

    out = capsys.readouterr().out.strip().splitlines()[-1]
    data = json.loads(out)
    assert data["event"] == "hello"
    assert data["level"] in ("info", "INFO")
    assert "timestamp" in data
    assert data["foo"] == 123


def test_bound_recording_context_is_included(capsys: pytest.CaptureFixture[str]) -> None:
    """bind_context adds device and test keys to every record until cleared."""
    setup_logging()
    bind_context(device="emulator-5554", test_class="LoginTest", test_method="givenUser")
    try:
        structlog.get_logger().info("with context")
    finally:
        clear_contextvars()

    data = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert data["device"] == "emulator-5554"
    assert data["test"] == "LoginTest.givenUser"
