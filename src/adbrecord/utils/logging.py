from __future__ import annotations

import json
import os
import threading
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

_LOG_DIR = Path(os.getenv("ADBRECORD_LOG_DIR", "artifacts/logs"))
_RECORDER_LOG = _LOG_DIR / "adbrecord.log"


def _ensure_log_dir() -> None:
    try:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass


def _level_from_env() -> int:
    """Get log level from ADBRECORD_LOG_LEVEL (TRACE|DEBUG|INFO|WARNING|ERROR)."""
    import logging

    raw = os.getenv("ADBRECORD_LOG_LEVEL", "INFO").upper()
    if raw == "TRACE":
        # Level below DEBUG
        return 5
    return getattr(logging, raw, logging.INFO)


_file_lock = threading.RLock()


def _copy_event_to_message(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    if "event" in event_dict and "message" not in event_dict:
        event_dict["message"] = event_dict["event"]
    return event_dict


def _drop_none_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if v is not None}


def _safe_name(name: str) -> str:
    return name.replace(os.sep, "_").replace("/", "_").replace(" ", "_").replace(":", "_")


def _file_sink_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Processor that duplicates log records into files:
    - artifacts/logs/adbrecord.log: all events
    - artifacts/logs/test_<name>.log: events for the current test (if test context is present)
    """
    _ensure_log_dir()

    line = json.dumps(event_dict, ensure_ascii=False, default=str)

    test_name = event_dict.get("test")
    test_path = None
    if isinstance(test_name, str) and test_name:
        test_path = _LOG_DIR / f"test_{_safe_name(test_name)}.log"

    try:
        with _file_lock:
            with _RECORDER_LOG.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
            if test_path is not None:
                with test_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
    except OSError:
        # Never break a recording because of log write issues
        pass

    return event_dict


def current_test_log_path(test_name: str | None = None) -> Path:
    """
    Return path to the log file of a test, if its name is known.

    If test_name is not provided, returns the common recorder log file path.
    """
    _ensure_log_dir()
    if not test_name:
        return _RECORDER_LOG
    return _LOG_DIR / f"test_{_safe_name(str(test_name))}.log"


def bind_context(
    *,
    device: str | None = None,
    test_class: str | None = None,
    test_method: str | None = None,
) -> None:
    """
    Bind the recording key (device, test class, test method) into the logging context.

    The combined "test" key ("<class>.<method>") routes records into the per-test log file.
    """
    test = f"{test_class}.{test_method}" if test_class and test_method else None
    bind_contextvars(device=device, test_class=test_class, test_method=test_method, test=test)


_CONFIGURED = False


def setup_logging() -> None:
    """
    Centralized setup of structured logging with JSON output and file duplication.

    Includes:
    - Log level from ADBRECORD_LOG_LEVEL
    - ISO 8601 timestamp (key: "timestamp")
    - Recording context (device, test_class, test_method) via contextvars
    - Duplication of each record into:
        artifacts/logs/adbrecord.log
        artifacts/logs/test_<class>.<method>.log
    - JSON printed to stdout
    """
    import logging

    global _CONFIGURED
    if _CONFIGURED:
        return

    _ensure_log_dir()

    level = _level_from_env()

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.MODULE]
            ),
            _copy_event_to_message,
            _drop_none_values,
            _file_sink_processor,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    # Sync root logging level (for third-party libraries)
    logging.getLogger().setLevel(level)

    _CONFIGURED = True


def get_logger(name: str | None = None) -> Any:
    """
    Get a structlog logger instance.

    Ensures logging is configured even in plain unit-test runs without the pytest plugin.
    """
    if not _CONFIGURED:
        setup_logging()
    return structlog.get_logger(name or __name__)


__all__ = [
    "setup_logging",
    "bind_context",
    "current_test_log_path",
    "get_logger",
    "clear_contextvars",
]
