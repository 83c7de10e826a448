"""Data models for the Scribe application."""

from .session import (
    ConnectionState,
    GroupSession,
    RecordingSession,
    RecordingResult,
)
from .events import PresenceKind, PresenceEvent
from .summary import (
    NO_CONVERSATION_SUMMARY,
    UploadResult,
    PostProcessArtifact,
    SummaryResult,
)

__all__ = [
    "ConnectionState",
    "GroupSession",
    "RecordingSession",
    "RecordingResult",
    "PresenceKind",
    "PresenceEvent",
    "NO_CONVERSATION_SUMMARY",
    "UploadResult",
    "PostProcessArtifact",
    "SummaryResult",
]
