"""Media inspection modules."""

from .analyzer import AudioStreamInfo, MediaMetadata, StreamInfo, VideoAnalyzer, VideoStreamInfo

__all__ = [
    "AudioStreamInfo",
    "MediaMetadata",
    "StreamInfo",
    "VideoAnalyzer",
    "VideoStreamInfo",
]
