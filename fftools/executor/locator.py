"""ffmpeg / ffprobe binary resolution.

Both binaries are looked up together, directory by directory, in this order:

1. the configured executables directory (``FFTOOLS_EXECUTABLES_PATH``)
2. the directory of the running application (``sys.argv[0]``)
3. every entry of ``PATH``, in order

The search stops as soon as both binaries are known. A file matches when its
name equals the binary name, or the name plus ``.exe``, ignoring case.

The result is resolved once and then cached for the lifetime of the locator;
:func:`resolve_executables` shares one locator across the whole process.
"""

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Iterable, Mapping, NamedTuple, Optional

from ..config import get_settings
from ..exceptions import ConfigurationError, ExecutableNotFoundError

logger = logging.getLogger("fftools")

FFMPEG_EXECUTABLE_NAME = "ffmpeg"
FFPROBE_EXECUTABLE_NAME = "ffprobe"
EXECUTABLE_SUFFIX = ".exe"


class ExecutablePaths(NamedTuple):
    """Absolute paths of the two required binaries."""
    ffmpeg: str
    ffprobe: str


def find_in_directory(directory: str | Path, name: str) -> Optional[str]:
    """Return the full path of ``name`` inside ``directory``, or ``None``."""
    if not directory:
        return None
    directory = Path(directory)
    if not directory.is_dir():
        return None

    wanted = {name.lower(), f"{name}{EXECUTABLE_SUFFIX}".lower()}
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return None

    for entry in entries:
        if entry.name.lower() in wanted and entry.is_file():
            return str(entry.resolve())
    return None


def _application_directory() -> Optional[str]:
    entry = sys.argv[0] if sys.argv else ""
    if not entry:
        return None
    path = Path(entry)
    if not path.exists():
        return None
    return str(path.resolve().parent)


class ExecutableLocator:
    """Find and cache the ffmpeg and ffprobe paths.

    Args:
        executables_path: Directory searched before everything else. Defaults
            to the configured ``Settings.executables_path``.
        application_dir: Directory of the hosting application. Defaults to the
            directory of ``sys.argv[0]``.
        environ: Mapping used to read ``PATH``. Defaults to ``os.environ``.
    """

    def __init__(
        self,
        executables_path: Optional[str] = None,
        application_dir: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.executables_path = (
            executables_path if executables_path is not None
            else get_settings().executables_path
        )
        self.application_dir = (
            application_dir if application_dir is not None
            else _application_directory()
        )
        self._environ = os.environ if environ is None else environ
        self._lock = threading.Lock()
        self._paths: Optional[ExecutablePaths] = None

    @property
    def resolved(self) -> bool:
        return self._paths is not None

    def resolve(self) -> ExecutablePaths:
        """Return both paths, searching on the first successful call only.

        Raises:
            ExecutableNotFoundError: If either binary is missing everywhere.
            ConfigurationError: If PATH is needed but not set.
        """
        paths = self._paths
        if paths is not None:
            return paths

        with self._lock:
            if self._paths is None:
                self._paths = self._search()
                logger.debug(
                    "Resolved ffmpeg=%s ffprobe=%s",
                    self._paths.ffmpeg, self._paths.ffprobe,
                )
            return self._paths

    def _leading_directories(self) -> list[str]:
        return [d for d in (self.executables_path, self.application_dir) if d]

    def _path_directories(self) -> list[str]:
        raw = self._environ.get("PATH")
        if raw is None:
            raise ConfigurationError(
                "PATH environment variable is not set; cannot search for ffmpeg"
            )
        return [d for d in raw.split(os.pathsep) if d]

    def _search(self) -> ExecutablePaths:
        ffmpeg: Optional[str] = None
        ffprobe: Optional[str] = None

        def scan(directories: Iterable[str]) -> bool:
            nonlocal ffmpeg, ffprobe
            for directory in directories:
                if ffmpeg is None:
                    ffmpeg = find_in_directory(directory, FFMPEG_EXECUTABLE_NAME)
                if ffprobe is None:
                    ffprobe = find_in_directory(directory, FFPROBE_EXECUTABLE_NAME)
                if ffmpeg and ffprobe:
                    return True
            return False

        if not scan(self._leading_directories()):
            scan(self._path_directories())

        if ffmpeg is None or ffprobe is None:
            missing = [
                name for name, found in (
                    (FFMPEG_EXECUTABLE_NAME, ffmpeg),
                    (FFPROBE_EXECUTABLE_NAME, ffprobe),
                ) if found is None
            ]
            where = f"{self.executables_path} or PATH" if self.executables_path else "PATH"
            raise ExecutableNotFoundError(
                f"Cannot find {' and '.join(missing)} in {where}. "
                "This package needs an installed FFmpeg. Add it to PATH or set "
                "FFTOOLS_EXECUTABLES_PATH to the directory holding the executables."
            )

        return ExecutablePaths(ffmpeg=ffmpeg, ffprobe=ffprobe)


_default_locator: Optional[ExecutableLocator] = None
_default_locator_lock = threading.Lock()


def get_locator() -> ExecutableLocator:
    """Return the process-wide locator, creating it on first use."""
    global _default_locator
    if _default_locator is None:
        with _default_locator_lock:
            if _default_locator is None:
                _default_locator = ExecutableLocator()
    return _default_locator


def resolve_executables() -> ExecutablePaths:
    """Resolve ffmpeg and ffprobe once per process."""
    return get_locator().resolve()
