"""Unit tests for SummarizationOrchestrator."""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from scribe.errors import InputTooLarge, SummarizationFailure
from scribe.models.summary import NO_CONVERSATION_SUMMARY, PostProcessArtifact
from scribe.summarization.base import AbstractSummarizationBackend
from scribe.summarization.orchestrator import SummarizationOrchestrator
from scribe.summarization.retry import RetryPolicy
from scribe.transcription.base import AbstractTranscriptionBackend


@pytest.fixture
def backend():
    mock = MagicMock(spec=AbstractSummarizationBackend)
    mock.summarize_audio = AsyncMock(return_value="## Meeting Agenda\n...")
    mock.summarize_text = AsyncMock(return_value="## Meeting Agenda\nfrom transcript")
    return mock


@pytest.fixture
def transcriber():
    mock = MagicMock(spec=AbstractTranscriptionBackend)
    mock.transcribe_file = AsyncMock(return_value="we agreed to ship on friday")
    mock.max_input_bytes = None
    return mock


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, base_delay_seconds=2.0, sleep=AsyncMock())


def artifact(**kwargs):
    defaults = {"merged_path": Path("meeting.wav"), "transcoded_path": Path("meeting.mp3")}
    defaults.update(kwargs)
    return PostProcessArtifact(**defaults)


@pytest.mark.unit
class TestSummarizationOrchestrator:

    @pytest.mark.asyncio
    async def test_short_session_never_calls_backend(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(artifact(), 119.0)

        assert result.skipped_reason == "too_short"
        assert result.text is None
        backend.summarize_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_summarizes_transcoded_audio(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(artifact(), 185.0)

        assert result.succeeded
        assert result.duration_seconds == 185.0
        backend.summarize_audio.assert_awaited_once_with(Path("meeting.mp3"))

    @pytest.mark.asyncio
    async def test_near_empty_short_circuits(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(artifact(near_empty=True), 300.0)

        assert result.text == NO_CONVERSATION_SUMMARY
        assert result.skipped_reason == "no_conversation"
        backend.summarize_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_too_large_is_not_sent(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(artifact(too_large=True), 300.0)

        assert result.skipped_reason == "too_large"
        assert not result.succeeded
        backend.summarize_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raw_track_without_transcode_fails(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(
            artifact(merged_path=Path("user-1.pcm"), transcoded_path=None), 300.0
        )

        assert not result.succeeded
        backend.summarize_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhausted_retries_yield_failure(self, backend, retry_policy):
        backend.summarize_audio.side_effect = SummarizationFailure("500")
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        result = await orchestrator.summarize_session(artifact(), 300.0)

        assert result.text is None
        assert result.skipped_reason is None
        assert backend.summarize_audio.await_count == 3

    @pytest.mark.asyncio
    async def test_summarize_dispatches_on_input_type(self, backend, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy)

        await orchestrator.summarize("the transcript")
        await orchestrator.summarize(Path("meeting.mp3"))

        backend.summarize_text.assert_awaited_once_with("the transcript")
        backend.summarize_audio.assert_awaited_once_with(Path("meeting.mp3"))

    @pytest.mark.asyncio
    async def test_transcript_mode(self, backend, transcriber, retry_policy):
        orchestrator = SummarizationOrchestrator(backend, retry_policy, transcriber=transcriber, mode="transcript")

        result = await orchestrator.summarize_session(artifact(), 300.0)

        transcriber.transcribe_file.assert_awaited_once_with(Path("meeting.wav"))
        backend.summarize_text.assert_awaited_once_with("we agreed to ship on friday")
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_transcription_is_retried(self, backend, transcriber, retry_policy):
        transcriber.transcribe_file.side_effect = [SummarizationFailure("deadline"), "hello there"]
        orchestrator = SummarizationOrchestrator(backend, retry_policy, transcriber=transcriber, mode="transcript")

        result = await orchestrator.summarize_session(artifact(), 300.0)

        assert transcriber.transcribe_file.await_count == 2
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_empty_transcript_means_no_conversation(self, backend, transcriber, retry_policy):
        transcriber.transcribe_file.return_value = "   "
        orchestrator = SummarizationOrchestrator(backend, retry_policy, transcriber=transcriber, mode="transcript")

        result = await orchestrator.summarize_session(artifact(), 300.0)

        assert result.text == NO_CONVERSATION_SUMMARY
        backend.summarize_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oversized_transcription_input_is_too_large(self, backend, transcriber, retry_policy, tmp_path):
        merged = tmp_path / "meeting.wav"
        merged.write_bytes(b"\x00" * 2000)
        transcriber.max_input_bytes = 1000
        orchestrator = SummarizationOrchestrator(backend, retry_policy, transcriber=transcriber, mode="transcript")

        result = await orchestrator.summarize_session(artifact(merged_path=merged), 300.0)

        assert result.skipped_reason == "too_large"
        transcriber.transcribe_file.assert_not_awaited()
        retry_policy.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_size_rejection_is_not_retried(self, backend, transcriber, retry_policy):
        transcriber.transcribe_file.side_effect = InputTooLarge("over the inline limit")
        orchestrator = SummarizationOrchestrator(backend, retry_policy, transcriber=transcriber, mode="transcript")

        result = await orchestrator.summarize_session(artifact(), 300.0)

        assert transcriber.transcribe_file.await_count == 1
        assert not result.succeeded

    def test_transcript_mode_requires_transcriber(self, backend):
        with pytest.raises(ValueError):
            SummarizationOrchestrator(backend, mode="transcript")

    def test_unknown_mode(self, backend):
        with pytest.raises(ValueError):
            SummarizationOrchestrator(backend, mode="video")
