"""Per-group voice connection lifecycle, driven by the target user's presence."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .recording_service import RecordingService
from .session_pipeline import SessionPipeline
from ..config import ScribeConfig
from ..errors import ConnectionTimeout, PermanentDisconnect, TransientDisconnect
from ..models.events import PresenceEvent, PresenceKind
from ..models.session import ConnectionState, GroupSession
from ..transport.base import VoiceConnection, VoiceTransport

logger = logging.getLogger(__name__)

_Job = Tuple[Callable[[], Awaitable[Any]], asyncio.Future, str]


class GroupDispatcher:
    """Runs one group's transitions one at a time, in submission order."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        self._queue: "asyncio.Queue[_Job]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.closed = False

    def submit(self, job: Callable[[], Awaitable[Any]], description: str = "transition") -> asyncio.Future:
        """Queue ``job`` (a coroutine factory) behind everything already submitted.

        Returns:
            Future resolved with the job's result once it has run
        """
        future = asyncio.get_running_loop().create_future()
        if self.closed:
            future.cancel()
            return future

        self._queue.put_nowait((job, future, description))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name=f"dispatcher-{self.group_id}")
        return future

    async def _run(self) -> None:
        while True:
            job, future, description = await self._queue.get()
            try:
                if future.cancelled():
                    continue
                logger.debug(f"Group {self.group_id}: running {description}")
                result = await job()
                if not future.done():
                    future.set_result(result)
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                logger.error(f"Group {self.group_id}: {description} failed: {e}", exc_info=True)
                if not future.done():
                    future.set_exception(e)
                    # Already logged; awaiting callers still see the exception
                    future.exception()
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted job has run."""
        await self._queue.join()

    async def close(self, timeout: Optional[float] = None) -> None:
        """Stop accepting jobs, cancel the queued ones and let the running one finish.

        The running job is cancelled only if it has not finished within ``timeout``.
        """
        self.closed = True
        while not self._queue.empty():
            _, future, _ = self._queue.get_nowait()
            future.cancel()
            self._queue.task_done()

        if self._worker is None or self._worker.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._queue.join()), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Group {self.group_id}: transition still running after {timeout}s, cancelling")

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass


class ConnectionController:
    """Owns at most one live voice connection per group and keeps recording in step with it."""

    def __init__(self,
                 config: ScribeConfig,
                 transport: VoiceTransport,
                 recording_service: RecordingService,
                 pipeline: SessionPipeline,
                 clock: Callable[[], datetime] = datetime.now):
        """Initialize controller.

        Args:
            config: Application configuration
            transport: Opens voice connections
            recording_service: Per-group capture
            pipeline: Receives every stopped recording
            clock: Source of the current time
        """
        self.transport = transport
        self.recording_service = recording_service
        self.pipeline = pipeline
        self._clock = clock

        self.ready_timeout = float(config.get('voice.ready_timeout_seconds', 30))
        self.reconnect_window = float(config.get('voice.reconnect_window_seconds', 5))
        self.max_duration = float(config.get('recording.max_duration_seconds', 9 * 60 * 60))
        self.shutdown_timeout = float(config.get('pipeline.shutdown_timeout_seconds', 600))
        self.transition_timeout = float(config.get('voice.transition_timeout_seconds', 60))

        self.groups: Dict[str, GroupSession] = {}
        self._dispatchers: Dict[str, GroupDispatcher] = {}
        self._watchdogs: Dict[str, asyncio.Task] = {}
        self._shutting_down = False

        logger.info(f"ConnectionController ready (ready timeout {self.ready_timeout}s, "
                    f"reconnect window {self.reconnect_window}s)")

    def dispatcher_for(self, group_id: str) -> GroupDispatcher:
        dispatcher = self._dispatchers.get(group_id)
        if dispatcher is None:
            dispatcher = GroupDispatcher(group_id)
            self._dispatchers[group_id] = dispatcher
        return dispatcher

    def active_groups(self) -> List[Dict[str, Any]]:
        return [
            {
                "group_id": session.group_id,
                "room_id": session.room_id,
                "state": session.connection_state.value,
                "started_at": session.started_at.isoformat() if session.started_at else None,
            }
            for session in self.groups.values()
        ]

    # Presence

    def on_presence(self, event: PresenceEvent) -> Optional[asyncio.Future]:
        """Pub/sub listener: queue the event on its group's dispatcher."""
        if self._shutting_down:
            logger.info(f"Shutting down, ignoring {event.kind.value} for group {event.group_id}")
            return None

        dispatcher = self.dispatcher_for(event.group_id)
        if event.kind is PresenceKind.JOINED:
            return dispatcher.submit(lambda: self.on_target_joined(event.group_id, event.new_room_id), "join")
        if event.kind is PresenceKind.LEFT:
            return dispatcher.submit(lambda: self.on_target_left(event.group_id), "leave")
        return dispatcher.submit(
            lambda: self.on_target_moved(event.group_id, event.old_room_id, event.new_room_id), "move"
        )

    async def on_target_joined(self, group_id: str, room_id: str) -> Optional[GroupSession]:
        existing = self.groups.get(group_id)
        if existing is not None and existing.is_live:
            logger.info(f"Group {group_id} already has a {existing.connection_state.value} "
                        f"connection to {existing.room_id}")
            return existing

        session = GroupSession(group_id=group_id, room_id=room_id, connection_state=ConnectionState.CONNECTING)
        self.groups[group_id] = session
        logger.info(f"Joining room {room_id} in group {group_id}")

        try:
            connection = await self.transport.join(group_id, room_id)
        except Exception as e:
            logger.error(f"Failed to join room {room_id} in group {group_id}: {e}")
            self._discard(session)
            return None

        session.connection = connection
        try:
            await connection.wait_for_state(ConnectionState.READY, self.ready_timeout)
        except (asyncio.TimeoutError, PermanentDisconnect):
            error = ConnectionTimeout(f"Room {room_id} not ready within {self.ready_timeout}s")
            logger.error(f"Group {group_id}: {error}")
            session.mark_destroyed()
            await self._destroy_connection(connection)
            self._discard(session)
            return None

        session.mark_ready(self._clock())
        connection.add_state_listener(
            lambda old, new: self._on_state_change(group_id, connection, old, new)
        )

        try:
            await self.recording_service.start(group_id, room_id, connection)
        except OSError as e:
            logger.error(f"Could not start recording for group {group_id}: {e}")
            await self._teardown(group_id, "recording failed to start", session)
            return None

        self._start_watchdog(group_id, session)
        logger.info(f"Connected to room {room_id} in group {group_id}, recording")
        return session

    async def on_target_left(self, group_id: str) -> None:
        logger.info(f"Target left voice in group {group_id}")
        await self._teardown(group_id, "target left")

    async def on_target_moved(self, group_id: str, old_room_id: str, new_room_id: str) -> None:
        logger.info(f"Target moved from {old_room_id} to {new_room_id} in group {group_id}")
        await self.on_target_left(group_id)
        await self.on_target_joined(group_id, new_room_id)

    # Connection state

    def _on_state_change(self, group_id: str, connection: VoiceConnection,
                         old_state: ConnectionState, new_state: ConnectionState) -> None:
        session = self.groups.get(group_id)
        if session is None or session.connection is not connection:
            return
        if session.connection_state is ConnectionState.DESTROYED or new_state is ConnectionState.DESTROYED:
            return

        session.connection_state = new_state
        if new_state is ConnectionState.READY:
            # started_at is kept from the first time the connection became ready
            session.mark_ready()
        elif new_state is ConnectionState.DISCONNECTED and not self._shutting_down:
            logger.warning(f"Group {group_id} disconnected from {session.room_id}, "
                           f"waiting up to {self.reconnect_window}s")
            self.dispatcher_for(group_id).submit(
                lambda: self._recover(group_id, session), "disconnect recovery"
            )

    async def _recover(self, group_id: str, session: GroupSession) -> None:
        if self.groups.get(group_id) is not session:
            return

        connection = session.connection
        try:
            if connection.state is ConnectionState.DISCONNECTED:
                await self._await_reconnect(connection)
        except PermanentDisconnect as e:
            logger.warning(f"Group {group_id}: {e}, tearing down")
            await self._teardown(group_id, "permanent disconnect", session)
            return

        transient = TransientDisconnect(f"{session.room_id} recovered within {self.reconnect_window}s")
        logger.info(f"Group {group_id}: {transient}, session kept")

    async def _await_reconnect(self, connection: VoiceConnection) -> None:
        """Race the signalling and connecting waits.

        Raises:
            PermanentDisconnect: neither state was re-entered within the window
        """
        waits = [
            asyncio.ensure_future(connection.wait_for_state(state, self.reconnect_window))
            for state in (ConnectionState.SIGNALLING, ConnectionState.CONNECTING)
        ]
        try:
            for next_done in asyncio.as_completed(waits):
                try:
                    await next_done
                    return
                except (asyncio.TimeoutError, PermanentDisconnect):
                    continue
            raise PermanentDisconnect(f"no reconnect within {self.reconnect_window}s")
        finally:
            for wait in waits:
                wait.cancel()

    # Teardown

    async def _teardown(self, group_id: str, reason: str, session: Optional[GroupSession] = None) -> None:
        """Stop recording, destroy the connection and hand the audio to the pipeline.

        When ``session`` is given, nothing happens unless it is still the group's
        registered session.
        """
        current = self.groups.get(group_id)
        if session is not None and current is not session:
            logger.debug(f"Group {group_id}: stale {reason} ignored")
            return

        logger.info(f"Tearing down group {group_id} ({reason})")
        recording = await self.recording_service.stop(group_id)

        if current is not None:
            if current.mark_destroyed():
                self._cancel_watchdog(group_id)
                if current.connection is not None:
                    await self._destroy_connection(current.connection)
            self._discard(current)

        self.pipeline.submit(recording)

    async def _destroy_connection(self, connection: VoiceConnection) -> None:
        try:
            await connection.destroy()
        except Exception as e:
            logger.error(f"Error destroying connection for group {connection.group_id}: {e}", exc_info=True)

    def _discard(self, session: GroupSession) -> None:
        if self.groups.get(session.group_id) is session:
            del self.groups[session.group_id]

    def _start_watchdog(self, group_id: str, session: GroupSession) -> None:
        self._cancel_watchdog(group_id)
        self._watchdogs[group_id] = asyncio.create_task(
            self._watch_duration(group_id, session), name=f"max-duration-{group_id}"
        )

    def _cancel_watchdog(self, group_id: str) -> None:
        task = self._watchdogs.pop(group_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _watch_duration(self, group_id: str, session: GroupSession) -> None:
        await asyncio.sleep(self.max_duration)
        logger.warning(f"Group {group_id} reached the {self.max_duration:.0f}s recording limit")
        self._watchdogs.pop(group_id, None)
        self.dispatcher_for(group_id).submit(
            lambda: self._teardown(group_id, "maximum duration reached", session), "max duration"
        )

    async def shutdown(self) -> None:
        """Tear down every live group one by one, then wait for their pipelines."""
        self._shutting_down = True
        logger.info(f"Shutting down {len(self.groups)} active group(s)")

        # Queued transitions are cancelled; one already running is allowed to finish
        for dispatcher in list(self._dispatchers.values()):
            await dispatcher.close(self.transition_timeout)
        self._dispatchers.clear()

        for group_id in list(self.groups):
            try:
                await self._teardown(group_id, "shutdown")
            except Exception as e:
                logger.error(f"Error tearing down group {group_id}: {e}", exc_info=True)

        await self.pipeline.drain(self.shutdown_timeout)
        logger.info("All groups torn down")
