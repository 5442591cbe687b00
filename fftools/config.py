"""Runtime settings for fftools.

Values come from environment variables so that a host application can point
the locator at a bundled ffmpeg build without touching code::

    FFTOOLS_EXECUTABLES_PATH   directory searched before the app dir and PATH
    FFTOOLS_MAX_THREADS        cap for the injected ``-threads`` flag
    FFTOOLS_TERMINATE_TIMEOUT  seconds to wait after terminate() before kill()
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger("fftools")

DEFAULT_MAX_THREADS = 16
DEFAULT_TERMINATE_TIMEOUT = 5.0
DEFAULT_OUTPUT_TAIL_SIZE = 50


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration."""
    executables_path: Optional[str] = None
    max_threads: int = DEFAULT_MAX_THREADS
    terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT
    output_tail_size: int = DEFAULT_OUTPUT_TAIL_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Malformed numeric values fall back to the defaults with a warning.
        """
        env = os.environ if environ is None else environ
        return cls(
            executables_path=env.get("FFTOOLS_EXECUTABLES_PATH") or None,
            max_threads=_read_number(
                env, "FFTOOLS_MAX_THREADS", int, DEFAULT_MAX_THREADS
            ),
            terminate_timeout=_read_number(
                env, "FFTOOLS_TERMINATE_TIMEOUT", float, DEFAULT_TERMINATE_TIMEOUT
            ),
        )


def _read_number(env: Mapping[str, str], key: str, kind, default):
    raw = env.get(key)
    if not raw:
        return default
    try:
        value = kind(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %s", key, raw, default)
        return default
    return value


_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return the cached process-wide settings, reading the environment once."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = Settings.from_env()
    return _settings
