"""Session-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class ConnectionState(Enum):
    """Lifecycle state of a group's voice connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    SIGNALLING = "signalling"
    READY = "ready"
    DISCONNECTED = "disconnected"
    DESTROYED = "destroyed"


@dataclass
class GroupSession:
    """The connection owned by one group while the target user is present."""
    group_id: str
    room_id: Optional[str] = None
    connection_state: ConnectionState = ConnectionState.IDLE
    started_at: Optional[datetime] = None
    connection: Any = None  # VoiceConnection handle from the transport

    @property
    def is_live(self) -> bool:
        return self.connection_state not in (ConnectionState.IDLE, ConnectionState.DESTROYED)

    def mark_ready(self, when: Optional[datetime] = None) -> None:
        """Move to READY, recording the start time only the first time."""
        self.connection_state = ConnectionState.READY
        if self.started_at is None:
            self.started_at = when or datetime.now()

    def mark_destroyed(self) -> bool:
        """Check-and-set the terminal state.

        Returns:
            True if this call performed the transition, False if the session
            was already destroyed.
        """
        if self.connection_state is ConnectionState.DESTROYED:
            return False
        self.connection_state = ConnectionState.DESTROYED
        self.room_id = None
        return True


@dataclass
class RecordingSession:
    """Audio capture for one group during one connected lifetime."""
    group_id: str
    room_id: str
    started_at: datetime
    directory: Path
    artifacts: List[Path] = field(default_factory=list)
    captures: Dict[str, Any] = field(default_factory=dict)  # speaker id -> SpeakerCapture
    stopped: bool = False


@dataclass
class RecordingResult:
    """What a stopped recording session hands to post-processing."""
    group_id: str
    room_id: str
    artifacts: List[Path]
    duration_seconds: float
    started_at: datetime
    stopped_at: datetime
