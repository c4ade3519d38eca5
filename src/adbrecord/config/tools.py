"""
Discovery of the external tools the recorder drives (adb, scrcpy).
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path

from ..errors import ConfigurationError
from ..platform import HostOS, current_host_os


def _exe(name: str) -> str:
    return f"{name}.exe" if current_host_os() is HostOS.WINDOWS else name


def adb_path_from_sdk_dir(sdk_dir: str | Path) -> Path:
    """Return <sdk_dir>/platform-tools/adb[.exe]."""
    return Path(sdk_dir) / "platform-tools" / _exe("adb")


def read_sdk_dir(local_properties: Path) -> str | None:
    """
    Read `sdk.dir` from an Android Studio local.properties file.

    Handles the Java properties escapes Android Studio writes on Windows (C\\:\\\\Users...).
    """
    if not local_properties.is_file():
        return None
    for raw in local_properties.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        match = re.match(r"([^=:\s]+)\s*[=:]\s*(.*)$", line)
        if not match or match.group(1) != "sdk.dir":
            continue
        return re.sub(r"\\(.)", r"\1", match.group(2)).strip() or None
    return None


def resolve_adb_path(explicit: str | None = None, project_dir: str | Path | None = None) -> str:
    """
    Locate adb.

    Search order:
    1. `explicit` (from configuration)
    2. `sdk.dir` in <project_dir>/local.properties
    3. $ANDROID_HOME/platform-tools
    4. `adb` on PATH

    Raises:
        ConfigurationError: If adb cannot be found or the resolved path does not exist.
    """
    candidate: str | None = explicit

    if candidate is None and project_dir is not None:
        sdk_dir = read_sdk_dir(Path(project_dir) / "local.properties")
        if sdk_dir:
            candidate = str(adb_path_from_sdk_dir(sdk_dir))

    if candidate is None:
        android_home = os.getenv("ANDROID_HOME")
        if android_home:
            candidate = str(adb_path_from_sdk_dir(android_home))

    if candidate is None:
        candidate = shutil.which("adb")

    if candidate is None:
        raise ConfigurationError(
            "Cannot find adb. Set adb.path in the configuration, sdk.dir in local.properties "
            "or the ANDROID_HOME environment variable"
        )
    if not candidate.strip() or not Path(candidate).exists():
        raise ConfigurationError(f"adb path {candidate!r} is not valid")
    return candidate


def resolve_scrcpy_path(explicit: str | None = None) -> str | None:
    """Return the configured scrcpy path, or the first executable scrcpy on PATH."""
    if explicit:
        return explicit
    return shutil.which(_exe("scrcpy"))
