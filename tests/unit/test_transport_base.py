"""Unit tests for the transport primitives used by the fake and py-cord transports."""

import asyncio
import pytest

from scribe.errors import CaptureSubscriptionError, PermanentDisconnect
from scribe.models.session import ConnectionState
from scribe.transport.base import InboundAudioStream


@pytest.mark.unit
class TestInboundAudioStream:

    @pytest.mark.asyncio
    async def test_yields_chunks_until_end(self):
        stream = InboundAudioStream("1")
        stream.feed(b"a")
        stream.feed(b"b")
        stream.end()
        stream.feed(b"ignored")

        chunks = [chunk async for chunk in stream]

        assert chunks == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_failure_raises_capture_error(self):
        stream = InboundAudioStream("9")
        stream.fail(RuntimeError("boom"))

        with pytest.raises(CaptureSubscriptionError) as excinfo:
            await stream.__anext__()
        assert excinfo.value.speaker_id == "9"


@pytest.mark.unit
class TestVoiceConnection:

    @pytest.mark.asyncio
    async def test_wait_for_state_resolves(self, make_connection):
        connection = make_connection("g1", "r1")
        waiter = asyncio.ensure_future(connection.wait_for_state(ConnectionState.READY, 1.0))
        await asyncio.sleep(0)

        connection.become(ConnectionState.READY)

        assert await waiter is ConnectionState.READY

    @pytest.mark.asyncio
    async def test_wait_for_state_times_out(self, make_connection):
        connection = make_connection("g1", "r1")

        with pytest.raises(asyncio.TimeoutError):
            await connection.wait_for_state(ConnectionState.READY, 0.01)

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent_and_fails_waiters(self, make_connection):
        connection = make_connection("g1", "r1")
        waiter = asyncio.ensure_future(connection.wait_for_state(ConnectionState.READY, 1.0))
        await asyncio.sleep(0)

        await connection.destroy()
        await connection.destroy()

        assert connection.disconnect_calls == 1
        assert connection.state is ConnectionState.DESTROYED
        with pytest.raises(PermanentDisconnect):
            await waiter

    @pytest.mark.asyncio
    async def test_no_transitions_after_destroy(self, make_connection):
        connection = make_connection("g1", "r1")
        seen = []
        connection.add_state_listener(lambda old, new: seen.append(new))

        await connection.destroy()
        connection.become(ConnectionState.READY)

        assert seen == [ConnectionState.DESTROYED]
        assert connection.state is ConnectionState.DESTROYED

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, make_connection):
        connection = make_connection("g1", "r1")
        seen = []

        def broken(old, new):
            raise RuntimeError("listener bug")

        connection.add_state_listener(broken)
        connection.add_state_listener(lambda old, new: seen.append((old, new)))
        connection.become(ConnectionState.READY)

        assert seen == [(ConnectionState.CONNECTING, ConnectionState.READY)]

    @pytest.mark.asyncio
    async def test_speaking_listeners_and_routing(self, make_connection):
        connection = make_connection("g1", "r1", ConnectionState.READY)
        started, ended = [], []
        on_start = started.append
        connection.add_speaking_listener(on_start, ended.append)

        stream = connection.subscribe("5")
        connection.speak("5", b"xy")
        connection._emit_speaking("5", started=False)
        connection.remove_speaking_listener(on_start)
        connection._emit_speaking("6", started=True)

        assert started == ["5"]
        assert ended == ["5"]
        stream.end()
        assert [chunk async for chunk in stream] == [b"xy"]

    @pytest.mark.asyncio
    async def test_destroy_ends_open_streams(self, make_connection):
        connection = make_connection("g1", "r1", ConnectionState.READY)
        stream = connection.subscribe("5")

        await connection.destroy()

        assert [chunk async for chunk in stream] == []
