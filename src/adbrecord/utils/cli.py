from __future__ import annotations

import subprocess
from collections.abc import Sequence
from typing import Any

from ..errors import ProcessLaunchError


class Completed:
    """
    Wrapper around subprocess.CompletedProcess that decodes stdout and stderr into strings.
    """

    def __init__(self, proc: subprocess.CompletedProcess):
        """
        Initialize a Completed object based on subprocess.CompletedProcess.

        Args:
            proc (subprocess.CompletedProcess): The completed process instance.
        """
        self.args = proc.args
        self.returncode = proc.returncode
        self.stdout = (
            proc.stdout.decode(errors="replace")
            if isinstance(proc.stdout, bytes | bytearray)
            else (proc.stdout or "")
        )
        self.stderr = (
            proc.stderr.decode(errors="replace")
            if isinstance(proc.stderr, bytes | bytearray)
            else (proc.stderr or "")
        )

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


def run_cmd(
    args: Sequence[str],
    *,
    check: bool = True,
    spawn: bool = False,
    timeout: float | None = None,
    **popen_kwargs: Any,
) -> Completed | subprocess.Popen:
    """
    Execute a command as a subprocess.

    Args:
        args (Sequence[str]): Command and arguments to execute.
        check (bool): If True, raise CalledProcessError on failure.
        spawn (bool): If True, start the process asynchronously and return a Popen object.
        timeout (float | None): Optional timeout in seconds for waiting for completion.
        **popen_kwargs: Extra keyword arguments for Popen when `spawn=True`
            (e.g. stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True).

    Returns:
        Completed | subprocess.Popen:
            - Completed: Result with stdout/stderr as strings (if `spawn=False`)
            - subprocess.Popen: Process object (if `spawn=True`)

    Raises:
        ProcessLaunchError: If the executable is missing or cannot be started.
        subprocess.CalledProcessError: If `check=True` and process exits with a nonzero code.
        subprocess.TimeoutExpired: If `timeout` elapses before the process exits.
    """
    argv = [str(a) for a in args]

    if spawn:
        try:
            return subprocess.Popen(argv, **popen_kwargs)
        except OSError as e:
            raise ProcessLaunchError(argv, e) from e

    try:
        proc = subprocess.run(argv, capture_output=True, timeout=timeout, check=False)
    except OSError as e:
        raise ProcessLaunchError(argv, e) from e

    if check and proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, argv, proc.stdout, proc.stderr)

    return Completed(proc)
