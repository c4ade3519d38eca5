from __future__ import annotations

import os
from typing import Any

import allure

from ..utils.logging import current_test_log_path
from .keys import recording_key


def pytest_runtest_makereport(item: Any, call: Any) -> None:
    """
    Pytest hook: called after each test phase (setup, call, teardown).

    When a recorded test fails, attaches the tail of its recorder log to the
    Allure report, next to the video.
    """
    if getattr(call, "when", None) != "call" or getattr(call, "excinfo", None) is None:
        return
    if not item.config.getoption("--adbrecord", default=False):
        return

    test_class, test_method = recording_key(item)
    path = current_test_log_path(f"{test_class}.{test_method}")
    if not os.path.exists(path):
        return
    try:
        with open(path, encoding="utf-8", errors="ignore") as f:
            # Last 200 lines keep the report small
            content = "".join(f.readlines()[-200:])
    except OSError:
        return

    if content:
        allure.attach(content, name="Recorder logs", attachment_type=allure.attachment_type.TEXT)
