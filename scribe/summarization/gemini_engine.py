"""Gemini summarization engine over the Generative Language REST API."""

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict, List

import aiohttp

from .base import AbstractSummarizationBackend
from .prompts import MEETING_SUMMARY, transcript_prompt
from ..errors import InputTooLarge, SummarizationFailure

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
}


class GeminiSummarizationEngine(AbstractSummarizationBackend):
    """Sends audio or transcripts to Gemini and returns the generated summary."""

    def __init__(self,
                 api_key: str,
                 model: str = "gemini-2.5-flash",
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 timeout: float = 300.0,
                 max_input_bytes: int = 20 * 1024 * 1024):
        """Initialize Gemini engine.

        Args:
            api_key: Generative Language API key
            model: Gemini model name
            base_url: API root
            timeout: Total request timeout in seconds
            max_input_bytes: Largest audio payload accepted inline
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_input_bytes = max_input_bytes

        logger.info(f"GeminiSummarizationEngine initialized with model: {model}")

    async def summarize_audio(self, audio_path: Path) -> str:
        audio_path = Path(audio_path)
        mime_type = MIME_TYPES.get(audio_path.suffix)
        if mime_type is None:
            raise SummarizationFailure(f"Unsupported audio format: {audio_path.suffix}")

        audio_bytes = await asyncio.to_thread(audio_path.read_bytes)
        if len(audio_bytes) > self.max_input_bytes:
            raise InputTooLarge(
                f"Audio is {len(audio_bytes)} bytes, limit is {self.max_input_bytes}"
            )

        logger.info(f"Generating summary from {audio_path.name} ({len(audio_bytes) / (1024 * 1024):.2f} MB)")
        parts = [
            {"text": MEETING_SUMMARY},
            {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(audio_bytes).decode("ascii")}},
        ]
        return await self._generate(parts)

    async def summarize_text(self, transcript: str) -> str:
        if not transcript or not transcript.strip():
            raise SummarizationFailure("No transcript to summarize")

        logger.info(f"Generating summary from {len(transcript)} character transcript")
        return await self._generate([{"text": transcript_prompt(transcript)}])

    async def _generate(self, parts: List[Dict[str, Any]]) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        data = {"contents": [{"parts": parts}]}

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, headers=headers, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise SummarizationFailure(f"Gemini API error: {response.status} - {error_text[:500]}")
                    result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SummarizationFailure(f"Failed to reach Gemini API: {e}") from e

        candidates = result.get("candidates") or []
        if not candidates:
            raise SummarizationFailure("Gemini response missing candidates")

        texts = [part.get("text", "") for part in candidates[0].get("content", {}).get("parts", [])]
        summary = "".join(texts).strip()
        if not summary:
            raise SummarizationFailure("Gemini returned an empty summary")

        logger.info(f"Generated summary ({len(summary)} characters)")
        return summary
