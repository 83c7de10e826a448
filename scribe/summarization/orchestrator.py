"""Summarization orchestrator: duration gate, guards and retried service calls."""

import logging
from pathlib import Path
from typing import Optional, Union

from .base import AbstractSummarizationBackend
from .retry import RetryPolicy
from ..models.summary import NO_CONVERSATION_SUMMARY, PostProcessArtifact, SummaryResult
from ..transcription.base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)

MODE_AUDIO = "audio"
MODE_TRANSCRIPT = "transcript"


class SummarizationOrchestrator:
    """Drives the transcription and summary services for one finished session."""

    def __init__(self,
                 backend: AbstractSummarizationBackend,
                 retry_policy: Optional[RetryPolicy] = None,
                 transcriber: Optional[AbstractTranscriptionBackend] = None,
                 mode: str = MODE_AUDIO,
                 min_duration_seconds: float = 120.0):
        """Initialize orchestrator.

        Args:
            backend: Generative summary service
            retry_policy: Retry policy applied to every external call
            transcriber: Speech-to-text service, required in transcript mode
            mode: "audio" sends the recording, "transcript" transcribes first
            min_duration_seconds: Sessions shorter than this are not summarized
        """
        if mode not in (MODE_AUDIO, MODE_TRANSCRIPT):
            raise ValueError(f"Unknown summarization mode: {mode}")
        if mode == MODE_TRANSCRIPT and transcriber is None:
            raise ValueError("Transcript mode needs a transcription backend")

        self.backend = backend
        self.retry_policy = retry_policy or RetryPolicy()
        self.transcriber = transcriber
        self.mode = mode
        self.min_duration_seconds = min_duration_seconds

    def should_summarize(self, duration_seconds: float) -> bool:
        """Minimum-duration gate."""
        if duration_seconds < self.min_duration_seconds:
            logger.info(f"Session lasted {duration_seconds:.0f}s, under the "
                        f"{self.min_duration_seconds:.0f}s floor; skipping summary")
            return False
        return True

    async def summarize(self, source: Union[Path, str]) -> Optional[str]:
        """Summarize an audio file or transcript text with retries.

        Returns:
            Summary text, or None after every attempt failed
        """
        if isinstance(source, str):
            return await self.retry_policy.run(
                lambda: self.backend.summarize_text(source), "Summary generation"
            )
        return await self.retry_policy.run(
            lambda: self.backend.summarize_audio(Path(source)), "Summary generation"
        )

    async def transcribe(self, audio_path: Path) -> Optional[str]:
        return await self.retry_policy.run(
            lambda: self.transcriber.transcribe_file(audio_path), "Transcription"
        )

    @staticmethod
    def _exceeds(path: Path, limit: Optional[int]) -> bool:
        if limit is None:
            return False
        size = Path(path).stat().st_size
        if size > limit:
            logger.warning(f"{Path(path).name} is {size} bytes, over the {limit} byte transcription limit")
            return True
        return False

    async def summarize_session(self, artifact: PostProcessArtifact, duration_seconds: float) -> SummaryResult:
        if not self.should_summarize(duration_seconds):
            return SummaryResult(None, duration_seconds, skipped_reason="too_short")

        if artifact.near_empty:
            logger.info("Recording is near-empty, not calling the summarizer")
            return SummaryResult(NO_CONVERSATION_SUMMARY, duration_seconds, skipped_reason="no_conversation")

        if self.mode == MODE_TRANSCRIPT:
            if self._exceeds(artifact.merged_path, self.transcriber.max_input_bytes):
                return SummaryResult(None, duration_seconds, skipped_reason="too_large")
            transcript = await self.transcribe(artifact.merged_path)
            if transcript is None:
                return SummaryResult(None, duration_seconds)
            if not transcript.strip():
                return SummaryResult(NO_CONVERSATION_SUMMARY, duration_seconds, skipped_reason="no_conversation")
            return SummaryResult(await self.summarize(transcript), duration_seconds)

        if artifact.too_large:
            return SummaryResult(None, duration_seconds, skipped_reason="too_large")

        source = artifact.summary_input
        if source is None:
            logger.error("No summarizable audio: transcoding failed for a raw track")
            return SummaryResult(None, duration_seconds)

        return SummaryResult(await self.summarize(source), duration_seconds)
