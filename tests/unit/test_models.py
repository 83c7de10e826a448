"""Unit tests for the session, event and summary models."""

import pytest
from datetime import datetime
from pathlib import Path

from scribe.models import (
    ConnectionState,
    GroupSession,
    PostProcessArtifact,
    PresenceEvent,
    PresenceKind,
    SummaryResult,
)


@pytest.mark.unit
class TestPresenceEvent:

    def test_join(self):
        event = PresenceEvent.from_rooms("g1", None, "r1", user_id="7", user_name="Ana")

        assert event.kind is PresenceKind.JOINED
        assert event.new_room_id == "r1"
        assert event.user_name == "Ana"

    def test_leave(self):
        assert PresenceEvent.from_rooms("g1", "r1", None).kind is PresenceKind.LEFT

    def test_move(self):
        event = PresenceEvent.from_rooms("g1", "r1", "r2")

        assert event.kind is PresenceKind.MOVED
        assert (event.old_room_id, event.new_room_id) == ("r1", "r2")

    def test_same_room_is_not_an_event(self):
        assert PresenceEvent.from_rooms("g1", "r1", "r1") is None
        assert PresenceEvent.from_rooms("g1", None, None) is None


@pytest.mark.unit
class TestGroupSession:

    def test_started_at_set_once(self):
        session = GroupSession("g1", "r1", ConnectionState.CONNECTING)
        first = datetime(2024, 5, 1, 14, 0, 0)

        session.mark_ready(first)
        session.connection_state = ConnectionState.DISCONNECTED
        session.mark_ready(datetime(2024, 5, 1, 14, 5, 0))

        assert session.started_at == first
        assert session.connection_state is ConnectionState.READY

    def test_mark_destroyed_is_check_and_set(self):
        session = GroupSession("g1", "r1", ConnectionState.READY)

        assert session.mark_destroyed() is True
        assert session.mark_destroyed() is False
        assert session.room_id is None
        assert not session.is_live

    def test_idle_session_is_not_live(self):
        assert not GroupSession("g1").is_live
        assert GroupSession("g1", "r1", ConnectionState.DISCONNECTED).is_live


@pytest.mark.unit
class TestPostProcessArtifact:

    def test_summary_input_prefers_transcoded(self):
        artifact = PostProcessArtifact(Path("merged.wav"), transcoded_path=Path("merged.mp3"))
        assert artifact.summary_input == Path("merged.mp3")

    def test_summary_input_falls_back_to_wav(self):
        assert PostProcessArtifact(Path("merged.wav")).summary_input == Path("merged.wav")

    def test_raw_pcm_without_transcode_has_no_summary_input(self):
        assert PostProcessArtifact(Path("user-1.pcm")).summary_input is None

    def test_summary_result_succeeded(self):
        assert SummaryResult("text", 130.0).succeeded
        assert not SummaryResult(None, 130.0).succeeded
