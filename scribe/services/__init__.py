"""Services layer: recording, post-processing, session pipeline and connection lifecycle."""

from .recording_service import RecordingService
from .postprocess_service import AudioPostProcessor
from .session_pipeline import SessionPipeline
from .connection_controller import ConnectionController, GroupDispatcher

__all__ = [
    "RecordingService",
    "AudioPostProcessor",
    "SessionPipeline",
    "ConnectionController",
    "GroupDispatcher",
]
