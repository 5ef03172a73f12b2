from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

import discord
from discord.ext import commands

LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}
DISCORD_MESSAGE_LIMIT = 2000
CHUNK_SIZE = 1900


class LoggingHelper:
    """
    Console and Discord channel logging for the farm.

    Every record is printed. Records at or above `channel_level` are also posted to the log
    channel; anything logged before the bot is ready waits in a queue until
    `flush_init_log_queue` runs.
    """

    def __init__(self, bot: Optional[commands.Bot], log_channel_id: Optional[int] = None,
                 channel_level: str = "INFO"):
        self.bot = bot
        self.log_channel_id = log_channel_id
        self.channel_level = channel_level
        self._init_log_queue: List[Tuple[str, str]] = []

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')

    @staticmethod
    def _chunks(message: str) -> Iterator[str]:
        for i in range(0, len(message), CHUNK_SIZE):
            yield message[i:i + CHUNK_SIZE]

    def _goes_to_channel(self, level: str) -> bool:
        return LEVELS.get(level.upper(), 20) >= LEVELS.get(self.channel_level.upper(), 20)

    async def log_to_discord(self, message: str, level: str = "INFO", embed: Optional[discord.Embed] = None):
        if self.bot is None or not self.log_channel_id:
            return

        if not self.bot.is_ready():
            self._init_log_queue.append((message, level))
            return

        log_channel = self.bot.get_channel(self.log_channel_id)
        if not isinstance(log_channel, discord.TextChannel):
            print(f"[LOG_ERROR|{level.upper()}] Log channel {self.log_channel_id} is missing or not a text channel.")
            return

        prefix = f"`[{self._timestamp()}] [{level.upper()}]` "
        quiet = discord.AllowedMentions.none()

        try:
            if len(prefix) + len(message) <= DISCORD_MESSAGE_LIMIT:
                await log_channel.send(content=prefix + message, embed=embed, allowed_mentions=quiet)
                return

            await log_channel.send(content=f"{prefix}Long record, sent in chunks.", embed=embed,
                                   allowed_mentions=quiet)
            for number, chunk in enumerate(self._chunks(message), start=1):
                await log_channel.send(f"```{level.upper()} {number}```\n{chunk}", allowed_mentions=quiet)
        except discord.Forbidden:
            print(f"[LOG_FORBIDDEN] Cannot post to log channel {self.log_channel_id}.")
        except discord.HTTPException as e:
            print(f"[LOG_HTTP_ERROR] Posting to log channel {self.log_channel_id} failed: {e}")

    def log(self, message: str, level: str = "INFO"):
        """Synchronous entry point for the engine helpers and the cog."""

        print(f"[LOG|{level.upper()}|{self._timestamp()}] {message}")

        if self.bot is None or not self._goes_to_channel(level):
            return

        loop = getattr(self.bot, 'loop', None)
        if loop is not None and loop.is_running():
            loop.create_task(self.log_to_discord(message, level=level))
        else:
            self._init_log_queue.append((message, level))

    async def flush_init_log_queue(self):
        queued, self._init_log_queue = self._init_log_queue, []
        if queued:
            print(f"[LOG|DEBUG|{self._timestamp()}] Posting {len(queued)} queued startup record(s).")
        for message, level in queued:
            await self.log_to_discord(message, level)
