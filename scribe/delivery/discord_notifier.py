"""Posts meeting summaries and failure notices to a Discord text channel."""

import logging
from typing import Optional

import discord

from .base import AbstractNotifier
from ..errors import DeliveryFailure

logger = logging.getLogger(__name__)

SUMMARY_COLOR = 0x0099FF
ERROR_COLOR = 0xFF0000
# Discord rejects embed descriptions longer than this
EMBED_DESCRIPTION_LIMIT = 4096


def truncate(text: str, limit: int = EMBED_DESCRIPTION_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


class DiscordChannelNotifier(AbstractNotifier):
    """Embeds sent through the bot's own client."""

    def __init__(self, bot: discord.Client, channel_id: Optional[str]):
        """Initialize notifier.

        Args:
            bot: Logged-in py-cord client
            channel_id: Notes channel; when unset every post is logged and skipped
        """
        self.bot = bot
        self.channel_id = channel_id

    async def _resolve_channel(self) -> discord.TextChannel:
        if not self.channel_id:
            raise DeliveryFailure("No meeting notes channel configured")

        channel = self.bot.get_channel(int(self.channel_id))
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(int(self.channel_id))
            except discord.DiscordException as e:
                raise DeliveryFailure(f"Channel {self.channel_id} could not be fetched: {e}") from e

        if not isinstance(channel, discord.TextChannel):
            raise DeliveryFailure(f"Channel {self.channel_id} not found or not a text channel")
        return channel

    async def _send(self, embed: discord.Embed) -> bool:
        try:
            channel = await self._resolve_channel()
            await channel.send(embed=embed)
        except DeliveryFailure as e:
            logger.warning(f"{e}; '{embed.title}' not delivered:\n{embed.description}")
            return False
        except discord.DiscordException as e:
            logger.error(f"Failed to send '{embed.title}' to channel {self.channel_id}: {e}")
            logger.info(f"Undelivered content:\n{embed.description}")
            return False

        logger.info(f"'{embed.title}' sent to channel {self.channel_id}")
        return True

    async def post_summary(self, summary: str, duration_seconds: float, link: Optional[str] = None) -> bool:
        embed = discord.Embed(
            title="Meeting Summary",
            description=truncate(summary),
            color=SUMMARY_COLOR,
            timestamp=discord.utils.utcnow(),
        )
        embed.set_footer(text=f"Duration: {round(duration_seconds)}s")
        if link:
            embed.add_field(name="Recording", value=link, inline=False)
        return await self._send(embed)

    async def post_error(self, message: str) -> bool:
        embed = discord.Embed(
            title="Error Processing Meeting",
            description=truncate(message),
            color=ERROR_COLOR,
            timestamp=discord.utils.utcnow(),
        )
        return await self._send(embed)
