"""Event models for presence tracking."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class PresenceKind(Enum):
    JOINED = "joined"
    LEFT = "left"
    MOVED = "moved"


@dataclass
class PresenceEvent:
    """Target user's voice presence change within one group."""
    kind: PresenceKind
    group_id: str
    old_room_id: Optional[str] = None
    new_room_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: str = "Unknown"
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_rooms(cls,
                   group_id: str,
                   old_room_id: Optional[str],
                   new_room_id: Optional[str],
                   user_id: Optional[str] = None,
                   user_name: str = "Unknown") -> Optional["PresenceEvent"]:
        """Classify a before/after room pair.

        Returns:
            PresenceEvent, or None when the room did not change (mute, deafen, ...)
        """
        if new_room_id and not old_room_id:
            kind = PresenceKind.JOINED
        elif old_room_id and not new_room_id:
            kind = PresenceKind.LEFT
        elif old_room_id and new_room_id and old_room_id != new_room_id:
            kind = PresenceKind.MOVED
        else:
            return None

        return cls(
            kind=kind,
            group_id=group_id,
            old_room_id=old_room_id,
            new_room_id=new_room_id,
            user_id=user_id,
            user_name=user_name,
        )
