"""Child process creation for ffmpeg and ffprobe."""

import asyncio
import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import psutil

from ..exceptions import InvalidArgumentError, ProcessLaunchError

logger = logging.getLogger("fftools")

_IS_WINDOWS = sys.platform == "win32"


class ProcessPriority(str, Enum):
    """Scheduling priority for a child process."""
    IDLE = "idle"
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGH = "high"
    REALTIME = "realtime"

    def to_native(self) -> int:
        """Return the value ``psutil.Process.nice()`` expects on this platform."""
        if _IS_WINDOWS:
            return getattr(psutil, _WINDOWS_CLASSES[self])
        return _POSIX_NICENESS[self]


_WINDOWS_CLASSES = {
    ProcessPriority.IDLE: "IDLE_PRIORITY_CLASS",
    ProcessPriority.BELOW_NORMAL: "BELOW_NORMAL_PRIORITY_CLASS",
    ProcessPriority.NORMAL: "NORMAL_PRIORITY_CLASS",
    ProcessPriority.ABOVE_NORMAL: "ABOVE_NORMAL_PRIORITY_CLASS",
    ProcessPriority.HIGH: "HIGH_PRIORITY_CLASS",
    ProcessPriority.REALTIME: "REALTIME_PRIORITY_CLASS",
}

_POSIX_NICENESS = {
    ProcessPriority.IDLE: 19,
    ProcessPriority.BELOW_NORMAL: 10,
    ProcessPriority.NORMAL: 0,
    ProcessPriority.ABOVE_NORMAL: -5,
    ProcessPriority.HIGH: -10,
    ProcessPriority.REALTIME: -20,
}


@dataclass(frozen=True)
class RunConfiguration:
    """Everything needed to start one child process."""
    arguments: str
    priority: Optional[ProcessPriority] = None
    redirect_stdin: bool = False
    redirect_stdout: bool = False
    redirect_stderr: bool = False
    multi_thread: bool = False


def split_arguments(args: str) -> list[str]:
    """Tokenise a free-form argument string without invoking a shell."""
    if not _IS_WINDOWS:
        return shlex.split(args)
    # Non-POSIX mode keeps backslashes in paths but also keeps the quotes
    tokens = shlex.split(args, posix=False)
    return [
        t[1:-1] if len(t) >= 2 and t[0] == t[-1] and t[0] in "\"'" else t
        for t in tokens
    ]


def quote_argument(value: str) -> str:
    """Quote one argument so :func:`split_arguments` returns it unchanged."""
    if not _IS_WINDOWS:
        return shlex.quote(value)
    return f'"{value}"'


def _creation_flags() -> int:
    return getattr(subprocess, "CREATE_NO_WINDOW", 0) if _IS_WINDOWS else 0


def apply_priority(pid: int, priority: Optional[ProcessPriority]) -> bool:
    """Set the priority of ``pid``, inheriting ours when ``priority`` is None.

    Failures are logged and reported through the return value; the child keeps
    running with whatever priority the OS gave it.
    """
    try:
        native = (
            priority.to_native() if priority is not None
            else psutil.Process().nice()
        )
        psutil.Process(pid).nice(native)
        return True
    except (psutil.Error, OSError) as e:
        logger.warning("Could not set priority %s on pid %s: %s", priority, pid, e)
        return False


async def spawn(
    args: str,
    path: Optional[str],
    priority: Optional[ProcessPriority] = None,
    redirect_stdin: bool = False,
    redirect_stdout: bool = False,
    redirect_stderr: bool = False,
) -> asyncio.subprocess.Process:
    """Start ``path`` with ``args`` and return the running process.

    Args:
        args: Argument string passed to the binary, split with shell-word rules.
        path: Absolute path of the executable.
        priority: Scheduling priority; ``None`` copies the caller's priority.
        redirect_stdin: Pipe stdin instead of inheriting it.
        redirect_stdout: Pipe stdout instead of inheriting it.
        redirect_stderr: Pipe stderr instead of inheriting it.

    Raises:
        InvalidArgumentError: If ``path`` is empty or ``args`` has unbalanced quotes.
        ProcessLaunchError: If the OS cannot start the process.
    """
    if not path:
        raise InvalidArgumentError("path must be a non-empty executable path")

    try:
        argv = [path, *split_arguments(args)]
    except ValueError as e:
        raise InvalidArgumentError(f"Malformed argument string {args!r}: {e}") from e
    logger.debug("Spawning: %s", " ".join(argv))

    pipe = asyncio.subprocess.PIPE
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=pipe if redirect_stdin else None,
            stdout=pipe if redirect_stdout else None,
            stderr=pipe if redirect_stderr else None,
            creationflags=_creation_flags(),
        )
    except OSError as e:
        raise ProcessLaunchError(path, e) from e

    apply_priority(process.pid, priority)
    return process


async def spawn_configured(path: Optional[str], config: RunConfiguration) -> asyncio.subprocess.Process:
    """Start ``path`` according to a :class:`RunConfiguration`."""
    return await spawn(
        config.arguments,
        path,
        priority=config.priority,
        redirect_stdin=config.redirect_stdin,
        redirect_stdout=config.redirect_stdout,
        redirect_stderr=config.redirect_stderr,
    )
