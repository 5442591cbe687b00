"""Media inspection with ffprobe."""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..exceptions import ProbeError
from ..executor.locator import ExecutableLocator, get_locator
from ..executor.process_runner import ProcessPriority, quote_argument, spawn

logger = logging.getLogger("fftools")

_PROBE_ARGS = "-v quiet -print_format json -show_format -show_streams"


class StreamInfo(BaseModel):
    """Information about a single stream."""
    index: int
    codec_name: str
    codec_type: str
    codec_long_name: Optional[str] = None
    bit_rate: Optional[int] = None
    duration: Optional[float] = None


class VideoStreamInfo(StreamInfo):
    """Video stream specific information."""
    width: int
    height: int
    pixel_format: Optional[str] = None
    frame_rate: Optional[float] = None
    nb_frames: Optional[int] = None


class AudioStreamInfo(StreamInfo):
    """Audio stream specific information."""
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    channel_layout: Optional[str] = None


class MediaMetadata(BaseModel):
    """Container and stream details reported by ffprobe."""
    file_path: str
    format_name: str
    duration: Optional[float] = None
    bit_rate: Optional[int] = None
    video_streams: list[VideoStreamInfo] = []
    audio_streams: list[AudioStreamInfo] = []
    other_streams: list[StreamInfo] = []

    @property
    def primary_video(self) -> Optional[VideoStreamInfo]:
        return self.video_streams[0] if self.video_streams else None

    @property
    def primary_audio(self) -> Optional[AudioStreamInfo]:
        return self.audio_streams[0] if self.audio_streams else None


def _int(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "", "N/A") else None
    except (TypeError, ValueError):
        return None


def _float(value) -> Optional[float]:
    try:
        return float(value) if value not in (None, "", "N/A") else None
    except (TypeError, ValueError):
        return None


def _frame_rate(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        num, den = map(int, value.split("/"))
        return num / den if den != 0 else None
    except ValueError:
        return None


class VideoAnalyzer:
    """Analyzes media files using the resolved ffprobe binary."""

    def __init__(
        self,
        ffprobe_path: Optional[str] = None,
        locator: Optional[ExecutableLocator] = None,
        priority: Optional[ProcessPriority] = None,
    ):
        """Initialize the analyzer.

        Args:
            ffprobe_path: Explicit ffprobe path. If None, the locator is used
                on the first analysis.
            locator: Locator to resolve ffprobe with; defaults to the
                process-wide one.
            priority: Priority for the ffprobe process.
        """
        self._ffprobe_path = ffprobe_path
        self._locator = locator
        self.priority = priority

    @property
    def ffprobe_path(self) -> str:
        if self._ffprobe_path is None:
            self._ffprobe_path = (self._locator or get_locator()).resolve().ffprobe
        return self._ffprobe_path

    async def analyze(self, media_path: str | Path) -> MediaMetadata:
        """Probe ``media_path`` and return its metadata.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ProbeError: If ffprobe fails or prints something unreadable.
        """
        media_path = Path(media_path)
        if not media_path.exists():
            raise FileNotFoundError(f"Media file not found: {media_path}")

        process = await spawn(
            f"{_PROBE_ARGS} {quote_argument(str(media_path))}",
            self.ffprobe_path,
            priority=self.priority,
            redirect_stdout=True,
            redirect_stderr=True,
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise ProbeError(
                f"ffprobe failed on {media_path} (exit {process.returncode}): "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {media_path}: {e}") from e

        return parse_probe_data(str(media_path), data)


def parse_probe_data(file_path: str, data: dict) -> MediaMetadata:
    """Convert ffprobe's JSON document into MediaMetadata."""
    format_info = data.get("format", {})
    metadata = MediaMetadata(
        file_path=file_path,
        format_name=format_info.get("format_name", "unknown"),
        duration=_float(format_info.get("duration")),
        bit_rate=_int(format_info.get("bit_rate")),
    )

    for stream in data.get("streams", []):
        common = dict(
            index=stream.get("index", 0),
            codec_name=stream.get("codec_name", "unknown"),
            codec_type=stream.get("codec_type", "unknown"),
            codec_long_name=stream.get("codec_long_name"),
            bit_rate=_int(stream.get("bit_rate")),
            duration=_float(stream.get("duration")),
        )
        codec_type = common["codec_type"]
        if codec_type == "video":
            metadata.video_streams.append(VideoStreamInfo(
                **common,
                width=stream.get("width", 0),
                height=stream.get("height", 0),
                pixel_format=stream.get("pix_fmt"),
                frame_rate=_frame_rate(stream.get("r_frame_rate")),
                nb_frames=_int(stream.get("nb_frames")),
            ))
        elif codec_type == "audio":
            metadata.audio_streams.append(AudioStreamInfo(
                **common,
                sample_rate=_int(stream.get("sample_rate")),
                channels=stream.get("channels"),
                channel_layout=stream.get("channel_layout"),
            ))
        else:
            metadata.other_streams.append(StreamInfo(**common))

    logger.debug(
        "Probed %s: %d video, %d audio stream(s)",
        file_path, len(metadata.video_streams), len(metadata.audio_streams),
    )
    return metadata
