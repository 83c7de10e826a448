"""Post-session pipeline: process, upload, summarize, deliver and clean up."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Set

from .postprocess_service import AudioPostProcessor
from ..delivery.base import AbstractNotifier, AbstractUploader
from ..delivery.drive_uploader import meeting_file_name
from ..errors import MergeFailure, UploadFailure
from ..models.session import RecordingResult
from ..models.summary import PostProcessArtifact, SummaryResult
from ..summarization.orchestrator import SummarizationOrchestrator

logger = logging.getLogger(__name__)


class SessionPipeline:
    """Runs each stopped recording through the post-session stages in the background."""

    def __init__(self,
                 postprocessor: AudioPostProcessor,
                 orchestrator: SummarizationOrchestrator,
                 notifier: AbstractNotifier,
                 uploader: Optional[AbstractUploader] = None,
                 name_for_upload: Optional[Callable[[datetime], str]] = None):
        """Initialize pipeline.

        Args:
            postprocessor: Merge/transcode stage
            orchestrator: Summarization stage
            notifier: Outbound channel for summaries and error notices
            uploader: Recording storage; uploads are skipped when None
            name_for_upload: Builds the uploaded file's display name from the session start
        """
        self.postprocessor = postprocessor
        self.orchestrator = orchestrator
        self.notifier = notifier
        self.uploader = uploader
        self.name_for_upload = name_for_upload or meeting_file_name
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, recording: Optional[RecordingResult]) -> Optional[asyncio.Task]:
        """Run the pipeline for ``recording`` as a tracked background task."""
        if recording is None:
            return None
        task = asyncio.create_task(self.run(recording), name=f"pipeline-{recording.group_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for running pipelines, cancelling whatever is left after ``timeout``."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} session pipeline(s) to finish")
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            logger.warning(f"Cancelling unfinished pipeline {task.get_name()}")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def run(self, recording: RecordingResult) -> SummaryResult:
        duration = recording.duration_seconds
        artifact: Optional[PostProcessArtifact] = None
        logger.info(f"Processing session for group {recording.group_id} "
                    f"({round(duration)}s, {len(recording.artifacts)} speaker files)")

        try:
            if not self.orchestrator.should_summarize(duration):
                return SummaryResult(None, duration, skipped_reason="too_short")

            try:
                artifact = await self.postprocessor.process(recording)
            except MergeFailure as e:
                logger.error(f"Session for group {recording.group_id} has no usable audio: {e}")
                await self.notifier.post_error("No audio was captured for this meeting.")
                return SummaryResult(None, duration)

            artifact.upload = await self._upload(artifact, recording.started_at)
            link = artifact.upload.view_url if artifact.upload else None

            result = await self.orchestrator.summarize_session(artifact, duration)
            await self._deliver(result, link)
            return result
        except Exception as e:
            logger.error(f"Session pipeline failed for group {recording.group_id}: {e}", exc_info=True)
            await self.notifier.post_error(f"An unexpected error occurred while processing the meeting: {e}")
            return SummaryResult(None, duration)
        finally:
            removed = self.postprocessor.cleanup(recording, artifact)
            logger.info(f"Cleanup for group {recording.group_id} removed {removed} file(s)")

    async def _upload(self, artifact: PostProcessArtifact, started_at: datetime):
        if self.uploader is None:
            return None
        if artifact.transcoded_path is None:
            logger.warning("No transcoded recording, skipping upload")
            return None
        try:
            return await self.uploader.upload(artifact.transcoded_path, self.name_for_upload(started_at))
        except UploadFailure as e:
            logger.error(f"Upload failed, summary will have no link: {e}")
            return None

    async def _deliver(self, result: SummaryResult, link: Optional[str]) -> bool:
        if result.succeeded:
            return await self.notifier.post_summary(result.text, result.duration_seconds, link)

        if result.skipped_reason == "too_large":
            message = "The recording is too long to process."
        else:
            message = "Failed to generate a summary for this meeting."
        if link:
            message += f"\nRecording: {link}"
        return await self.notifier.post_error(message)
