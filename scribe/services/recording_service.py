"""Recording service that owns every group's multi-speaker capture."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from ..audio.capture import SpeakerCapture
from ..audio.sinks import create_sink
from ..config import ScribeConfig
from ..models.session import RecordingResult, RecordingSession
from ..storage.file_manager import FileManager
from ..transport.base import VoiceConnection

logger = logging.getLogger(__name__)


class RecordingService:
    """Starts and stops per-group recording sessions as a unit."""

    def __init__(self,
                 config: ScribeConfig,
                 file_manager: FileManager,
                 sleep: Callable = asyncio.sleep,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize recording service.

        Args:
            config: Application configuration
            file_manager: Working storage for the captured audio
            sleep: Coroutine used for the flush grace period
            clock: Source of the current time
        """
        self.config = config
        self.file_manager = file_manager
        self.container = config.get('audio.container', 'wav')
        self.flush_grace_seconds = float(config.get('recording.flush_grace_seconds', 1.0))
        self.retain_audio = bool(config.get('storage.retain_audio', False))
        self._sleep = sleep
        self._clock = clock

        # Session registry: group id -> its own speaker registry
        self.sessions: Dict[str, RecordingSession] = {}
        self._speaking_callbacks: Dict[str, Tuple[VoiceConnection, Callable[[str], None]]] = {}

        logger.info(f"RecordingService ready (container={self.container})")

    def has_session(self, group_id: str) -> bool:
        return group_id in self.sessions

    def get_session(self, group_id: str) -> Optional[RecordingSession]:
        return self.sessions.get(group_id)

    async def start(self, group_id: str, room_id: str, connection: VoiceConnection) -> RecordingSession:
        """Start recording every speaker in ``room_id``.

        Any session still registered for the group is stopped and its files
        discarded first, so a new session never inherits stale subscriptions.
        """
        if group_id in self.sessions:
            logger.warning(f"Cleaning up existing session for group {group_id}")
            stale = await self.stop(group_id)
            if stale is not None:
                self.file_manager.delete_files(stale.artifacts, retain=self.retain_audio)

        session = RecordingSession(
            group_id=group_id,
            room_id=room_id,
            started_at=self._clock(),
            directory=self.file_manager.create_session_directory(group_id),
        )
        self.sessions[group_id] = session

        def on_speaker_started(speaker_id: str) -> None:
            self._on_speaker_started(session, connection, speaker_id)

        def on_speaker_ended(speaker_id: str) -> None:
            logger.debug(f"User {speaker_id} stopped speaking in group {group_id}")

        connection.add_speaking_listener(on_speaker_started, on_speaker_ended)
        self._speaking_callbacks[group_id] = (connection, on_speaker_started)

        logger.info(f"Recording session started for room {room_id} (group {group_id})")
        return session

    def _on_speaker_started(self, session: RecordingSession, connection: VoiceConnection, speaker_id: str) -> None:
        if session.stopped:
            return

        existing = session.captures.get(speaker_id)
        if existing is not None and existing.subscription_active:
            logger.debug(f"Already subscribed to user {speaker_id}")
            return
        if existing is not None:
            # Earlier stream ended; its artifact stays in the session
            logger.info(f"Stream for user {speaker_id} had ended, resubscribing")

        path = self.file_manager.speaker_artifact_path(session.directory, speaker_id, self.container)
        try:
            sink = create_sink(self.container, path)
        except (OSError, ValueError) as e:
            logger.error(f"Error setting up recording for {speaker_id}: {e}")
            return

        capture = SpeakerCapture(speaker_id, connection.subscribe(speaker_id), sink)
        session.captures[speaker_id] = capture
        session.artifacts.append(path)
        capture.start()
        logger.info(f"Started recording user {speaker_id} -> {path.name}")

    async def stop(self, group_id: str) -> Optional[RecordingResult]:
        """Stop the group's session and return what it captured.

        Returns:
            RecordingResult, or None when no session is active. Calling this
            twice is safe: the second call finds no session.
        """
        session = self.sessions.pop(group_id, None)
        if session is None:
            logger.info(f"No active session for group {group_id}")
            return None

        session.stopped = True
        logger.info(f"Stopping recording for group {group_id}")

        connection, callback = self._speaking_callbacks.pop(group_id, (None, None))
        if connection is not None:
            connection.remove_speaking_listener(callback)

        # End all subscriptions first, then wait for the sinks to finalize
        captures = list(session.captures.values())
        for capture in captures:
            capture.stream.close()
        await asyncio.gather(*(capture.stop() for capture in captures))

        # Give buffered writes time to settle
        await self._sleep(self.flush_grace_seconds)

        session.captures.clear()

        stopped_at = self._clock()
        duration = (stopped_at - session.started_at).total_seconds()
        logger.info(f"Recording duration: {round(duration)}s, {len(session.artifacts)} speaker files")

        return RecordingResult(
            group_id=group_id,
            room_id=session.room_id,
            artifacts=list(session.artifacts),
            duration_seconds=duration,
            started_at=session.started_at,
            stopped_at=stopped_at,
        )
