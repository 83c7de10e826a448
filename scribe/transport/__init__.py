"""Voice transport abstractions. The py-cord binding lives in pycord_transport."""

from .base import InboundAudioStream, VoiceConnection, VoiceTransport
from .presence_pub import PRESENCE_TOPIC, PresencePublisher

__all__ = [
    "InboundAudioStream",
    "VoiceConnection",
    "VoiceTransport",
    "PRESENCE_TOPIC",
    "PresencePublisher",
]
