"""ffmpeg process location, spawning and supervision."""

from .locator import ExecutableLocator, ExecutablePaths, get_locator, resolve_executables
from .process_runner import ProcessPriority, RunConfiguration, spawn, spawn_configured
from .progress import ProgressEvent, ProgressMonitor, RawOutputEvent
from .session import ConversionResult, ConversionSession, Stopwatch

__all__ = [
    "ExecutableLocator",
    "ExecutablePaths",
    "get_locator",
    "resolve_executables",
    "ProcessPriority",
    "RunConfiguration",
    "spawn",
    "spawn_configured",
    "ProgressEvent",
    "ProgressMonitor",
    "RawOutputEvent",
    "ConversionResult",
    "ConversionSession",
    "Stopwatch",
]
