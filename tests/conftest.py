"""Pytest configuration and fixtures for Scribe tests."""

import pytest
import tempfile
import logging
import wave
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from scribe.config import ScribeConfig
from scribe.models.session import ConnectionState
from scribe.transport.base import VoiceConnection, VoiceTransport


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_RATE = 48000
CHANNELS = 2


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: multi-component scenarios with a fake transport")


class FakeClock:
    """Manually advanced replacement for datetime.now."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 5, 1, 14, 30, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeConnection(VoiceConnection):
    """In-memory voice connection driven directly by the test."""

    def __init__(self, group_id: str, room_id: str,
                 initial_state: ConnectionState = ConnectionState.CONNECTING):
        super().__init__(group_id, room_id, initial_state)
        self.disconnect_calls = 0
        self._speaking: Dict[str, bool] = {}

    def become(self, state: ConnectionState) -> None:
        self._set_state(state)

    def speak(self, speaker_id: str, chunk: bytes) -> None:
        """Deliver audio the way a transport does: speaking signal first, then frames."""
        if not self._speaking.get(speaker_id):
            self._speaking[speaker_id] = True
            self._emit_speaking(speaker_id, started=True)
        self._route_audio(speaker_id, chunk)

    def stop_speaking(self, speaker_id: str) -> None:
        self._speaking[speaker_id] = False
        self._emit_speaking(speaker_id, started=False)

    def fail_stream(self, speaker_id: str, error: Exception) -> None:
        self._streams[speaker_id].fail(error)

    async def _disconnect(self) -> None:
        self.disconnect_calls += 1


class FakeTransport(VoiceTransport):
    """Hands out FakeConnections; ready immediately unless told otherwise."""

    def __init__(self, auto_ready: bool = True):
        self.auto_ready = auto_ready
        self.fail_with: Optional[Exception] = None
        self.connections: List[FakeConnection] = []

    async def join(self, group_id: str, room_id: str) -> FakeConnection:
        if self.fail_with is not None:
            raise self.fail_with
        connection = FakeConnection(group_id, room_id)
        self.connections.append(connection)
        if self.auto_ready:
            connection.become(ConnectionState.READY)
        return connection


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def test_config(temp_data_dir):
    """Configuration with short timeouts and no flush grace period."""
    return ScribeConfig.from_dict({
        "voice": {
            "ready_timeout_seconds": 0.05,
            "reconnect_window_seconds": 0.05,
        },
        "audio": {"container": "wav"},
        "recording": {"flush_grace_seconds": 0},
        "postprocess": {
            "min_artifact_bytes": 1000,
            "near_empty_bytes": 192000,
            "silence_rms_threshold": 50,
        },
        "summarization": {"min_duration_seconds": 120},
        "storage": {"data_directory": temp_data_dir, "retain_audio": False},
        "pipeline": {"shutdown_timeout_seconds": 5},
    })


@pytest.fixture
def audio_test_data():
    """Generate interleaved stereo 16-bit audio for testing."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=SAMPLE_RATE, channels=CHANNELS):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz
            channels: Interleaved channel count

        Returns:
            bytes: Audio data as bytes
        """
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
        elif pattern == "noise":
            wave_data = np.random.uniform(-1, 1, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        audio_data = (wave_data * 32767).astype(np.int16)
        return np.repeat(audio_data, channels).tobytes()

    return generate_audio


@pytest.fixture
def write_wav(temp_data_dir, audio_test_data):
    """Write a 48 kHz stereo WAV file and return its path."""
    def _write(name="speaker.wav", pattern="sine", duration_seconds=1.0, directory=None):
        path = Path(directory or temp_data_dir) / name
        with wave.open(str(path), 'wb') as wf:
            wf.setnchannels(CHANNELS)
            wf.setsampwidth(2)
            wf.setframerate(SAMPLE_RATE)
            wf.writeframes(audio_test_data(pattern, duration_seconds))
        return path

    return _write


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection
