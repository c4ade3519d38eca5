from __future__ import annotations

import os
from typing import Any


def _clean(part: str) -> str:
    return part.replace(os.sep, "_").replace("/", "_").replace(":", "_")


def recording_key(item: Any) -> tuple[str, str]:
    """
    Return (test_class, test_method) for a pytest item.

    Test functions outside a class use the module name as test class.
    """
    cls = getattr(item, "cls", None)
    if cls is not None:
        test_class = cls.__name__
    else:
        module = getattr(item, "module", None)
        test_class = getattr(module, "__name__", None) or "tests"
    return _clean(test_class), _clean(str(getattr(item, "name", "test")))
