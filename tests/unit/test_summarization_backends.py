"""Unit tests for the Gemini engine and Google Speech backend input handling."""

import base64
import pytest
from pathlib import Path
from unittest.mock import AsyncMock

from scribe.errors import SummarizationFailure
from scribe.summarization.gemini_engine import GeminiSummarizationEngine
from scribe.summarization.prompts import MEETING_SUMMARY, transcript_prompt
from scribe.transcription.google_backend import GoogleSpeechBackend


@pytest.mark.unit
class TestGeminiSummarizationEngine:

    @pytest.mark.asyncio
    async def test_audio_sent_inline(self, temp_data_dir):
        path = Path(temp_data_dir) / "meeting.mp3"
        path.write_bytes(b"ID3audio")
        engine = GeminiSummarizationEngine(api_key="key")
        engine._generate = AsyncMock(return_value="summary")

        assert await engine.summarize_audio(path) == "summary"

        parts = engine._generate.await_args.args[0]
        assert parts[0] == {"text": MEETING_SUMMARY}
        assert parts[1]["inline_data"]["mime_type"] == "audio/mp3"
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"ID3audio"

    @pytest.mark.asyncio
    async def test_oversized_audio_rejected(self, temp_data_dir):
        path = Path(temp_data_dir) / "meeting.wav"
        path.write_bytes(b"\x00" * 64)
        engine = GeminiSummarizationEngine(api_key="key", max_input_bytes=32)
        engine._generate = AsyncMock()

        with pytest.raises(SummarizationFailure):
            await engine.summarize_audio(path)
        engine._generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsupported_format_rejected(self, temp_data_dir):
        engine = GeminiSummarizationEngine(api_key="key")

        with pytest.raises(SummarizationFailure):
            await engine.summarize_audio(Path(temp_data_dir) / "user-1.pcm")

    @pytest.mark.asyncio
    async def test_empty_transcript_rejected(self):
        engine = GeminiSummarizationEngine(api_key="key")

        with pytest.raises(SummarizationFailure):
            await engine.summarize_text("  ")

    def test_transcript_prompt_embeds_transcript(self):
        prompt = transcript_prompt("hello world")

        assert "## Action Items" in prompt
        assert prompt.endswith("hello world")


@pytest.mark.unit
class TestGoogleSpeechBackend:

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            GoogleSpeechBackend(credentials_path=None)

    @pytest.mark.asyncio
    async def test_uninitialized_backend_fails(self, write_wav):
        backend = GoogleSpeechBackend(credentials_path="creds.json")

        with pytest.raises(SummarizationFailure):
            await backend.transcribe_file(write_wav("meeting.wav"))

    @pytest.mark.asyncio
    async def test_mp3_not_accepted(self, temp_data_dir):
        backend = GoogleSpeechBackend(credentials_path="creds.json")
        backend.client = object()

        with pytest.raises(SummarizationFailure):
            await backend.transcribe_file(Path(temp_data_dir) / "meeting.mp3")
