"""Pytest configuration for fftools tests.

Puts the project root on sys.path so `from fftools... import ...` works when
running pytest from a checkout, and provides stand-in ffmpeg scripts that
are executed with the current Python interpreter.
"""

import os
import shlex
import sys
import textwrap

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from fftools.config import Settings  # noqa: E402
from fftools.executor.locator import ExecutablePaths  # noqa: E402


FAKE_FFMPEG = textwrap.dedent("""\
    import sys
    err = sys.stderr
    err.write("ffmpeg version n6.1 Copyright (c) 2000-2023 the FFmpeg developers\\n")
    err.write("  Duration: 00:00:10.00, start: 0.000000, bitrate: 1000 kb/s\\n")
    for i in range(1, 4):
        err.write(
            "frame=%4d fps= 25 q=28.0 size=%8dKiB time=00:00:%05.2f "
            "bitrate=1000.0kbits/s speed=1.5x\\r" % (i * 50, i * 256, i * 2.0)
        )
        err.flush()
    err.write("\\n")
    if len(sys.argv) > 1 and sys.argv[1] != "0":
        err.write("Error opening input file missing.mp4.\\n")
        sys.exit(int(sys.argv[1]))
    err.write("video:750kB audio:0kB subtitle:0kB other streams:0kB\\n")
""")

SLOW_FFMPEG = textwrap.dedent("""\
    import sys
    import time
    sys.stderr.write("ready\\n")
    sys.stderr.flush()
    time.sleep(float(sys.argv[1]) if len(sys.argv) > 1 else 30)
""")


class FixedLocator:
    """Locator stand-in that always resolves to the running interpreter."""

    def __init__(self, path: str = sys.executable):
        self.paths = ExecutablePaths(ffmpeg=path, ffprobe=path)

    def resolve(self) -> ExecutablePaths:
        return self.paths


@pytest.fixture
def locator():
    return FixedLocator()


@pytest.fixture
def settings():
    return Settings(terminate_timeout=2.0)


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Quoted path of a script that prints ffmpeg-style progress to stderr."""
    script = tmp_path / "fake_ffmpeg.py"
    script.write_text(FAKE_FFMPEG)
    return shlex.quote(str(script))


@pytest.fixture
def slow_ffmpeg(tmp_path):
    """Quoted path of a script that prints 'ready' then sleeps argv[1] seconds."""
    script = tmp_path / "slow_ffmpeg.py"
    script.write_text(SLOW_FFMPEG)
    return shlex.quote(str(script))
