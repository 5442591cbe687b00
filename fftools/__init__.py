"""
fftools: asyncio supervision for the ffmpeg and ffprobe command-line tools.

Locates the binaries, runs ffmpeg one job per session with live progress
events, and supports cancellation.

Example usage:
    session = ConversionSession().set_multi_thread(True)
    session.on_progress.subscribe(print)
    result = await session.start("-i input.mkv -c:v libx264 output.mp4")
"""

__version__ = "1.0.0"

from .config import Settings, get_settings
from .events import EventHook
from .exceptions import (
    ConfigurationError,
    ConversionError,
    ExecutableNotFoundError,
    FFToolsError,
    InvalidArgumentError,
    ProbeError,
    ProcessLaunchError,
    SessionAlreadyRunningError,
)
from .executor import (
    ConversionResult,
    ConversionSession,
    ExecutableLocator,
    ExecutablePaths,
    ProcessPriority,
    ProgressEvent,
    ProgressMonitor,
    RawOutputEvent,
    RunConfiguration,
    resolve_executables,
    spawn,
)
from .video import MediaMetadata, VideoAnalyzer

__all__ = [
    "Settings",
    "get_settings",
    "EventHook",
    "ConfigurationError",
    "ConversionError",
    "ExecutableNotFoundError",
    "FFToolsError",
    "InvalidArgumentError",
    "ProbeError",
    "ProcessLaunchError",
    "SessionAlreadyRunningError",
    "ConversionResult",
    "ConversionSession",
    "ExecutableLocator",
    "ExecutablePaths",
    "ProcessPriority",
    "ProgressEvent",
    "ProgressMonitor",
    "RawOutputEvent",
    "RunConfiguration",
    "resolve_executables",
    "spawn",
    "MediaMetadata",
    "VideoAnalyzer",
]
