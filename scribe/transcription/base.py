"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    # Inputs larger than this are rejected before any request is made (None: no limit)
    max_input_bytes: Optional[int] = None

    def __init__(self, language: str = "en-US"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    async def transcribe_file(self, audio_path: Path) -> str:
        """Transcribe a recorded audio file.

        Args:
            audio_path: WAV or raw PCM recording

        Returns:
            Transcript text, empty if no speech was recognized

        Raises:
            SummarizationFailure: the service rejected the input or failed
        """
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
