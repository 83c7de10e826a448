"""Per-speaker capture: one inbound stream pumped into one sink."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from .sinks import AudioSink
from ..errors import CaptureSubscriptionError
from ..transport.base import InboundAudioStream

logger = logging.getLogger(__name__)


class SpeakerCapture:
    """Owns exactly one speaker's inbound stream and the sink it is written to."""

    def __init__(self, speaker_id: str, stream: InboundAudioStream, sink: AudioSink):
        self.speaker_id = speaker_id
        self.stream = stream
        self.sink = sink
        self.subscription_active = False
        self.bytes_received = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def artifact_path(self) -> Path:
        return self.sink.path

    def start(self) -> None:
        """Start pumping the stream into the sink in the background."""
        if self._task is not None:
            return
        self.subscription_active = True
        self._task = asyncio.create_task(self._pump(), name=f"capture-{self.speaker_id}")

    async def _pump(self) -> None:
        try:
            async for chunk in self.stream:
                self.bytes_received += len(chunk)
                self.sink.write(chunk)
        except CaptureSubscriptionError as e:
            logger.error(f"Stream error for {self.speaker_id}: {e}")
        finally:
            self.subscription_active = False
            self.sink.close()
            logger.info(f"Stream ended for {self.speaker_id}, received {self.bytes_received} bytes")

    async def stop(self) -> None:
        """Terminate the subscription and finalize the sink."""
        self.stream.close()
        if self._task is not None:
            try:
                await self._task
            except Exception as e:
                logger.error(f"Capture task for {self.speaker_id} failed: {e}", exc_info=True)
        self.subscription_active = False
        self.sink.close()
