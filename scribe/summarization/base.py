"""Abstract base class for summarization backends."""

from abc import ABC, abstractmethod
from pathlib import Path


class AbstractSummarizationBackend(ABC):
    """Single-shot generative summary service. Retrying is the caller's job."""

    # Inputs larger than this are rejected before any request is made
    max_input_bytes: int = 20 * 1024 * 1024

    @abstractmethod
    async def summarize_audio(self, audio_path: Path) -> str:
        """Summarize a meeting recording.

        Raises:
            SummarizationFailure: the service rejected the input or failed
        """
        pass

    @abstractmethod
    async def summarize_text(self, transcript: str) -> str:
        """Summarize a meeting transcript.

        Raises:
            SummarizationFailure: the service rejected the input or failed
        """
        pass
