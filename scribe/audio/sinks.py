"""Write destinations for one speaker's captured audio."""

import logging
import wave
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, BinaryIO

logger = logging.getLogger(__name__)

# Decoded voice audio as delivered by the transport
SAMPLE_RATE = 48000
CHANNELS = 2
SAMPLE_WIDTH = 2  # 16-bit signed little endian


class AudioSink(ABC):
    """Exclusively owned write destination for a single speaker."""

    extension = ""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.bytes_written = 0
        self.closed = False

    def write(self, chunk: bytes) -> None:
        if self.closed:
            logger.debug(f"Dropping {len(chunk)} bytes written after close: {self.path.name}")
            return
        self._write(chunk)
        self.bytes_written += len(chunk)

    def close(self) -> None:
        """Flush and close. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self._close()
        logger.debug(f"Sink closed: {self.path.name} ({self.bytes_written} bytes)")

    @abstractmethod
    def _write(self, chunk: bytes) -> None:
        pass

    @abstractmethod
    def _close(self) -> None:
        pass


class RawFileSink(AudioSink):
    """Dumps the raw PCM byte stream to a .pcm file."""

    extension = "pcm"

    def __init__(self, path: Path):
        super().__init__(path)
        self._file: Optional[BinaryIO] = open(self.path, 'wb')

    def _write(self, chunk: bytes) -> None:
        self._file.write(chunk)

    def _close(self) -> None:
        self._file.flush()
        self._file.close()
        self._file = None


class WaveFileSink(AudioSink):
    """Wraps decoded PCM frames in a WAV container as they arrive."""

    extension = "wav"

    def __init__(self,
                 path: Path,
                 sample_rate: int = SAMPLE_RATE,
                 channels: int = CHANNELS,
                 sample_width: int = SAMPLE_WIDTH):
        super().__init__(path)
        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = sample_width
        self._wave = wave.open(str(self.path), 'wb')
        self._wave.setnchannels(channels)
        self._wave.setsampwidth(sample_width)
        self._wave.setframerate(sample_rate)

    def _write(self, chunk: bytes) -> None:
        # Header sizes are patched on close
        self._wave.writeframesraw(chunk)

    def _close(self) -> None:
        self._wave.close()
        self._wave = None


SINK_TYPES = {
    "wav": WaveFileSink,
    "pcm": RawFileSink,
}


def create_sink(container: str, path: Path) -> AudioSink:
    """Create the sink for the configured container ("wav" or "pcm")."""
    try:
        sink_class = SINK_TYPES[container]
    except KeyError:
        raise ValueError(f"Unknown audio container: {container}") from None
    return sink_class(path)
