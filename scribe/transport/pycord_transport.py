"""Voice transport backed by py-cord's voice receive API."""

import asyncio
import logging
import time
from typing import Dict, Optional

import discord

from .base import VoiceConnection, VoiceTransport
from ..errors import ConnectionTimeout
from ..models.events import PresenceEvent
from ..models.session import ConnectionState

logger = logging.getLogger(__name__)


class _CaptureSink(discord.sinks.Sink):
    """Forwards decoded per-user PCM from the receive thread to the event loop."""

    def __init__(self, connection: "PycordVoiceConnection", loop: asyncio.AbstractEventLoop):
        super().__init__()
        self._connection = connection
        self._loop = loop

    @discord.sinks.Filters.container
    def write(self, data, user):
        # Called on py-cord's decoder thread
        if self.finished or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._connection._on_packet, str(user), bytes(data))

    def cleanup(self):
        self.finished = True


class PycordVoiceConnection(VoiceConnection):
    """Wraps a py-cord ``VoiceClient`` and derives connection state by polling it."""

    def __init__(self,
                 group_id: str,
                 room_id: str,
                 bot_user_id: Optional[str] = None,
                 poll_interval: float = 0.5,
                 speaking_timeout: float = 1.0):
        super().__init__(group_id, room_id)
        self.voice_client: Optional[discord.VoiceClient] = None
        self.bot_user_id = bot_user_id
        self.poll_interval = poll_interval
        self.speaking_timeout = speaking_timeout
        self._last_packet: Dict[str, float] = {}
        self._monitor_task: Optional[asyncio.Task] = None

    async def connect(self, channel: discord.VoiceChannel, timeout: float) -> None:
        """Connect to the voice channel and start receiving audio."""
        try:
            self.voice_client = await channel.connect(timeout=timeout, reconnect=True)
        except asyncio.TimeoutError as e:
            raise ConnectionTimeout(f"Voice connection to {self.room_id} timed out") from e

        await self.voice_client.guild.change_voice_state(channel=channel, self_mute=True, self_deaf=False)

        loop = asyncio.get_running_loop()
        self.voice_client.start_recording(_CaptureSink(self, loop), self._recording_finished)
        self._set_state(ConnectionState.READY)
        self._monitor_task = asyncio.create_task(self._monitor(), name=f"voice-monitor-{self.group_id}")

    async def _recording_finished(self, sink, *args) -> None:
        logger.debug(f"py-cord recording finished for group {self.group_id}")

    def _on_packet(self, speaker_id: str, data: bytes) -> None:
        if self.state is ConnectionState.DESTROYED or speaker_id == self.bot_user_id:
            return
        if not self._speaking_listeners:
            # Nobody records yet; the first packet after a listener arrives starts the speaker
            return
        if speaker_id not in self._last_packet:
            self._emit_speaking(speaker_id, started=True)
        self._last_packet[speaker_id] = time.monotonic()
        self._route_audio(speaker_id, data)

    async def _monitor(self) -> None:
        """Map the client's connected flag onto the connection state machine."""
        while self.state is not ConnectionState.DESTROYED:
            await asyncio.sleep(self.poll_interval)
            connected = self.voice_client is not None and self.voice_client.is_connected()

            if connected and self.state is not ConnectionState.READY:
                if self.state is ConnectionState.DISCONNECTED:
                    self._set_state(ConnectionState.CONNECTING)
                self._set_state(ConnectionState.READY)
            elif not connected and self.state is ConnectionState.READY:
                self._set_state(ConnectionState.DISCONNECTED)

            # Speaking ends after a stretch of silence; the stream stays open
            now = time.monotonic()
            for speaker_id, last_seen in list(self._last_packet.items()):
                if now - last_seen > self.speaking_timeout:
                    del self._last_packet[speaker_id]
                    self._emit_speaking(speaker_id, started=False)

    async def _disconnect(self) -> None:
        if self._monitor_task and self._monitor_task is not asyncio.current_task():
            self._monitor_task.cancel()
        if self.voice_client is None:
            return
        try:
            if self.voice_client.recording:
                self.voice_client.stop_recording()
        except discord.DiscordException as e:
            logger.warning(f"Failed to stop py-cord recording for group {self.group_id}: {e}")
        if self.voice_client.is_connected():
            await self.voice_client.disconnect(force=True)


class PycordVoiceTransport(VoiceTransport):
    """Opens py-cord voice connections for a logged-in bot."""

    def __init__(self, bot: discord.Client, ready_timeout: float = 30.0):
        self.bot = bot
        self.ready_timeout = ready_timeout

    async def join(self, group_id: str, room_id: str) -> PycordVoiceConnection:
        channel = self.bot.get_channel(int(room_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(room_id))
        if not isinstance(channel, discord.VoiceChannel):
            raise ConnectionTimeout(f"Channel {room_id} is not a voice channel")

        bot_user_id = str(self.bot.user.id) if self.bot.user else None
        connection = PycordVoiceConnection(group_id, room_id, bot_user_id=bot_user_id)
        await connection.connect(channel, timeout=self.ready_timeout)
        return connection


def presence_event_from_voice_state(member: discord.Member,
                                    before: discord.VoiceState,
                                    after: discord.VoiceState) -> Optional[PresenceEvent]:
    """Translate a voice state update into a presence event (None if the room did not change)."""
    old_room = str(before.channel.id) if before.channel else None
    new_room = str(after.channel.id) if after.channel else None
    return PresenceEvent.from_rooms(
        group_id=str(member.guild.id),
        old_room_id=old_room,
        new_room_id=new_room,
        user_id=str(member.id),
        user_name=member.display_name,
    )
