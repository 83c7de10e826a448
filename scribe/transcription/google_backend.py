"""Google Speech-to-Text transcription backend."""

import asyncio
import time
import logging
import wave
from pathlib import Path
from typing import Optional

from .base import AbstractTranscriptionBackend
from ..audio.sinks import CHANNELS, SAMPLE_RATE
from ..errors import InputTooLarge, SummarizationFailure

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

# Inline audio content limit of the Speech API
MAX_INLINE_BYTES = 10 * 1024 * 1024


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for whole-recording transcription."""

    max_input_bytes = MAX_INLINE_BYTES

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = SAMPLE_RATE,
                 channels: int = CHANNELS,
                 language: str = "en-US",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 timeout: float = 600.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the recordings
            channels: Channel count of the recordings
            language: Language code (e.g., 'en-US', 'es-ES')
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            timeout: Seconds to wait for the long-running recognize operation
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.timeout = timeout
        self.client = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"
        self.config = speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                audio_channel_count=channels,
                language_code=self.language,
                use_enhanced=self.use_enhanced,
                enable_automatic_punctuation=self.enable_automatic_punctuation,
                model="default",
            )

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")

        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    @staticmethod
    def _read_pcm(audio_path: Path) -> bytes:
        if audio_path.suffix == ".wav":
            with wave.open(str(audio_path), 'rb') as wf:
                return wf.readframes(wf.getnframes())
        return audio_path.read_bytes()

    async def transcribe_file(self, audio_path: Path) -> str:
        """Transcribe a WAV or raw PCM recording."""
        if self.client is None:
            raise SummarizationFailure("Google Speech backend is not initialized")

        audio_path = Path(audio_path)
        if audio_path.suffix not in (".wav", ".pcm"):
            raise SummarizationFailure(f"Unsupported audio format for transcription: {audio_path.suffix}")

        content = await asyncio.to_thread(self._read_pcm, audio_path)
        if len(content) > self.max_input_bytes:
            raise InputTooLarge(
                f"Audio is {len(content)} bytes, Speech API inline limit is {self.max_input_bytes}"
            )

        logger.info(f"Transcribing: {audio_path.name} ({len(content)} bytes)")
        start_time = time.time()
        try:
            response = await asyncio.to_thread(self._recognize, content)
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT deadline exceeded for %s", audio_path.name)
            raise SummarizationFailure(f"Google Speech timeout: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error("Google STT API call error for %s: %s", audio_path.name, e)
            raise SummarizationFailure(f"Google Speech API error: {e}") from e

        transcript = " ".join(
            result.alternatives[0].transcript
            for result in response.results
            if result.alternatives
        ).strip()

        if transcript:
            logger.info(f"Transcribed {len(transcript)} characters in {time.time() - start_time:.1f}s")
        else:
            logger.info(f"No transcription for {audio_path.name}")
        return transcript

    def _recognize(self, content: bytes) -> speech.LongRunningRecognizeResponse:
        audio = speech.RecognitionAudio(content=content)
        operation = self.client.long_running_recognize(config=self.config, audio=audio)
        return operation.result(timeout=self.timeout)

    def cleanup(self) -> None:
        """Clean up Google Speech client resources."""
        self.client = None
