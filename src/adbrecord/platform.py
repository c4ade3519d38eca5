from __future__ import annotations

import os
import sys
from enum import Enum
from functools import cache


class HostOS(str, Enum):
    """
    Operating system family of the machine running the recorder.

    Selects command syntax and the termination strategy for host processes.
    """

    WINDOWS = "windows"
    POSIX = "posix"


@cache
def current_host_os() -> HostOS:
    """Return the host OS family. Resolved once per process and never changes afterwards."""
    if os.name == "nt" or sys.platform.startswith("win"):
        return HostOS.WINDOWS
    return HostOS.POSIX
