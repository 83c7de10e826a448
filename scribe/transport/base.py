"""Abstract voice transport and the connection/stream primitives it hands out."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import CaptureSubscriptionError, PermanentDisconnect
from ..models.session import ConnectionState

logger = logging.getLogger(__name__)

StateListener = Callable[[ConnectionState, ConnectionState], None]
SpeakingListener = Callable[[str], None]

_END = object()


class InboundAudioStream:
    """One speaker's inbound audio, iterated as ``bytes`` chunks.

    The stream never ends on silence; it ends only when the transport calls
    :meth:`end`, fails with :meth:`fail`, or the consumer calls :meth:`close`.
    """

    def __init__(self, speaker_id: str):
        self.speaker_id = speaker_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def feed(self, chunk: bytes) -> None:
        if not self.closed:
            self._queue.put_nowait(chunk)

    def end(self) -> None:
        """Transport side: no more audio will arrive."""
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_END)

    def fail(self, error: Exception) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(error)

    def close(self) -> None:
        """Consumer side: manual termination."""
        self.end()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise CaptureSubscriptionError(self.speaker_id, str(item)) from item
        return item


class VoiceConnection(ABC):
    """A joined voice room with observable state and per-speaker audio."""

    def __init__(self, group_id: str, room_id: str,
                 initial_state: ConnectionState = ConnectionState.CONNECTING):
        self.group_id = group_id
        self.room_id = room_id
        self.state = initial_state
        self._state_listeners: List[StateListener] = []
        self._speaking_listeners: List[Tuple[SpeakingListener, Optional[SpeakingListener]]] = []
        self._state_waiters: Dict[ConnectionState, List[asyncio.Future]] = {}
        self._streams: Dict[str, InboundAudioStream] = {}

    # State

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self.state
        if old_state is new_state:
            return
        if old_state is ConnectionState.DESTROYED:
            logger.debug(f"Ignoring {new_state.value} after destroy for group {self.group_id}")
            return

        self.state = new_state
        logger.debug(f"Connection {self.group_id}/{self.room_id}: {old_state.value} -> {new_state.value}")

        for waiter in self._state_waiters.pop(new_state, []):
            if not waiter.done():
                waiter.set_result(new_state)

        if new_state is ConnectionState.DESTROYED:
            for waiters in self._state_waiters.values():
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_exception(PermanentDisconnect("connection destroyed"))
            self._state_waiters.clear()

        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.error(f"State listener failed for group {self.group_id}: {e}", exc_info=True)

    async def wait_for_state(self, state: ConnectionState, timeout: float) -> ConnectionState:
        """Wait until the connection enters ``state``.

        Raises:
            asyncio.TimeoutError: state not reached within ``timeout`` seconds
            PermanentDisconnect: the connection was destroyed while waiting
        """
        if self.state is state:
            return state
        if self.state is ConnectionState.DESTROYED:
            raise PermanentDisconnect("connection destroyed")

        waiter = asyncio.get_running_loop().create_future()
        self._state_waiters.setdefault(state, []).append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout)
        finally:
            waiters = self._state_waiters.get(state)
            if waiters and waiter in waiters:
                waiters.remove(waiter)

    # Speakers

    def add_speaking_listener(self, on_start: SpeakingListener,
                              on_end: Optional[SpeakingListener] = None) -> None:
        self._speaking_listeners.append((on_start, on_end))

    def remove_speaking_listener(self, on_start: SpeakingListener) -> None:
        self._speaking_listeners = [
            pair for pair in self._speaking_listeners if pair[0] is not on_start
        ]

    def _emit_speaking(self, speaker_id: str, started: bool) -> None:
        for on_start, on_end in list(self._speaking_listeners):
            callback = on_start if started else on_end
            if callback is None:
                continue
            try:
                callback(speaker_id)
            except Exception as e:
                logger.error(f"Speaking listener failed for {speaker_id}: {e}", exc_info=True)

    def subscribe(self, speaker_id: str) -> InboundAudioStream:
        """Open a manually terminated audio stream for one speaker."""
        existing = self._streams.get(speaker_id)
        if existing and not existing.closed:
            return existing
        stream = InboundAudioStream(speaker_id)
        self._streams[speaker_id] = stream
        return stream

    def _route_audio(self, speaker_id: str, chunk: bytes) -> None:
        stream = self._streams.get(speaker_id)
        if stream is not None:
            stream.feed(chunk)

    def _end_all_streams(self) -> None:
        for stream in self._streams.values():
            stream.end()
        self._streams.clear()

    # Teardown

    async def destroy(self) -> None:
        """Tear the connection down. Safe to call more than once."""
        if self.state is ConnectionState.DESTROYED:
            return
        self._end_all_streams()
        try:
            await self._disconnect()
        finally:
            self._set_state(ConnectionState.DESTROYED)

    @abstractmethod
    async def _disconnect(self) -> None:
        """Release the underlying transport resources."""
        pass


class VoiceTransport(ABC):
    """Joins voice rooms on behalf of a group."""

    @abstractmethod
    async def join(self, group_id: str, room_id: str) -> VoiceConnection:
        """Open a connection to ``room_id``. May return before it is ready."""
        pass
