"""Progress parsing for ffmpeg's stderr status output.

ffmpeg prints a header (including ``Duration: 00:01:23.45, start: ...``) and
then rewrites a status line terminated by ``\\r``::

    frame= 1234 fps= 48 q=28.0 size=   10240KiB time=00:01:23.45 bitrate=1004.9kbits/s speed=1.9x

Every line becomes a :class:`RawOutputEvent`. Lines with a parseable
``time=`` become a :class:`ProgressEvent` as well.
"""

import codecs
import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

from ..config import DEFAULT_OUTPUT_TAIL_SIZE
from ..events import EventHook

logger = logging.getLogger("fftools")

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_FIELD = re.compile(r"(\w+)=\s*(\S+)")
_TIMESTAMP = re.compile(r"^(-?)(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)$")
_DURATION = re.compile(r"Duration:\s*(\d+:\d{1,2}:\d{1,2}(?:\.\d+)?)")
_LEADING_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?")

_CHUNK_SIZE = 4096


class ByteStream(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


@dataclass(frozen=True)
class RawOutputEvent:
    """One line of process output, verbatim."""
    line: str
    pid: Optional[int] = None


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot parsed from one ffmpeg status line."""
    time: float
    frame: Optional[int] = None
    fps: Optional[float] = None
    q: Optional[float] = None
    size_kb: Optional[int] = None
    bitrate_kbps: Optional[float] = None
    speed: Optional[float] = None
    total_duration: Optional[float] = None
    pid: Optional[int] = None

    @property
    def percent(self) -> Optional[float]:
        """Share of the input processed, 0-100, when the total is known."""
        if not self.total_duration or self.total_duration <= 0:
            return None
        return max(0.0, min(100.0, self.time / self.total_duration * 100))


def parse_timestamp(value: str) -> Optional[float]:
    """Convert ``[-]HH:MM:SS.ss`` to seconds; ``None`` if it doesn't match."""
    match = _TIMESTAMP.match(value.strip())
    if not match:
        return None
    sign, hours, minutes, seconds = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    return -total if sign else total


def _number(value: Optional[str], kind=float):
    if value is None:
        return None
    match = _LEADING_NUMBER.match(value)
    if not match:
        return None
    return kind(float(match.group(0)))


def parse_duration_line(line: str) -> Optional[float]:
    """Return the input length announced by a ``Duration:`` header line."""
    match = _DURATION.search(line)
    if not match:
        return None
    return parse_timestamp(match.group(1))


def parse_progress_line(
    line: str,
    total_duration: Optional[float] = None,
    pid: Optional[int] = None,
) -> Optional[ProgressEvent]:
    """Parse a status line into a ProgressEvent, or ``None`` if it isn't one."""
    fields = dict(_FIELD.findall(line))
    if "time" not in fields:
        return None
    elapsed = parse_timestamp(fields["time"])
    if elapsed is None:
        return None

    return ProgressEvent(
        time=elapsed,
        frame=_number(fields.get("frame"), int),
        fps=_number(fields.get("fps")),
        q=_number(fields.get("q")),
        size_kb=_number(fields.get("size") or fields.get("Lsize"), int),
        bitrate_kbps=_number(fields.get("bitrate")),
        speed=_number(fields.get("speed")),
        total_duration=total_duration,
        pid=pid,
    )


async def iter_lines(stream: ByteStream, chunk_size: int = _CHUNK_SIZE) -> AsyncIterator[str]:
    """Yield non-blank text lines from ``stream`` until EOF.

    Lines end at ``\\n``, ``\\r`` or ``\\r\\n``; bytes are decoded as UTF-8
    with replacement characters.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        buffer += decoder.decode(chunk)
        parts = _LINE_BREAK.split(buffer)
        buffer = parts.pop()
        for part in parts:
            if part.strip():
                yield part.rstrip()

    buffer += decoder.decode(b"", final=True)
    if buffer.strip():
        yield buffer.rstrip()


class ProgressMonitor:
    """Reads one output stream and publishes what it sees.

    Subscribe to :attr:`on_data_received` for every line and to
    :attr:`on_progress` for parsed status lines. Events fire in the order
    the process wrote the lines.
    """

    def __init__(self, pid: Optional[int] = None, tail_size: int = DEFAULT_OUTPUT_TAIL_SIZE):
        self.pid = pid
        self.on_progress: EventHook[ProgressEvent] = EventHook()
        self.on_data_received: EventHook[RawOutputEvent] = EventHook()
        self.total_duration: Optional[float] = None
        self.tail: deque[str] = deque(maxlen=tail_size)
        self.line_count = 0
        self.progress_count = 0

    def handle_line(self, line: str) -> Optional[ProgressEvent]:
        """Publish events for one line; returns the progress event if any."""
        self.line_count += 1
        self.tail.append(line)
        self.on_data_received.emit(RawOutputEvent(line=line, pid=self.pid))

        try:
            if self.total_duration is None:
                duration = parse_duration_line(line)
                if duration is not None:
                    self.total_duration = duration
                    return None
            event = parse_progress_line(line, self.total_duration, self.pid)
        except (ValueError, OverflowError) as e:
            logger.debug("Skipping unparseable output line %r: %s", line, e)
            return None

        if event is not None:
            self.progress_count += 1
            self.on_progress.emit(event)
        return event

    async def lines(self, stream: ByteStream) -> AsyncIterator[str]:
        """Yield each line of ``stream`` after its events have been published."""
        async for line in iter_lines(stream):
            self.handle_line(line)
            yield line

    async def watch(self, stream: ByteStream) -> int:
        """Consume ``stream`` to EOF; returns the number of lines seen."""
        async for _ in self.lines(stream):
            pass
        return self.line_count
