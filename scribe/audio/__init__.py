"""Audio capture, sink and ffmpeg helpers."""

from .sinks import AudioSink, RawFileSink, WaveFileSink, create_sink
from .capture import SpeakerCapture
from .ffmpeg import FFmpegError, FFmpegRunner

__all__ = [
    "AudioSink",
    "RawFileSink",
    "WaveFileSink",
    "create_sink",
    "SpeakerCapture",
    "FFmpegError",
    "FFmpegRunner",
]
