"""Relay bot entry point: a Discord client that only posts what the web API sends it."""
import logging

import discord
from discord.ext import commands

import config
from bot.http_server import start_http_server

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("scrim.bot")

intents = discord.Intents.default()


class RelayBot(commands.Bot):
    """Scrim tournament relay bot."""

    def __init__(self):
        super().__init__(command_prefix="!", intents=intents)
        self.http_runner = None

    async def setup_hook(self) -> None:
        self.http_runner = await start_http_server(self)

    async def on_ready(self) -> None:
        logger.info("Bot ready: %s (ID: %s)", self.user, self.user.id if self.user else "?")
        if config.DISCORD_GUILD_ID and not self.get_guild(config.DISCORD_GUILD_ID):
            logger.warning("Bot is not a member of guild %s - tournament events will fail", config.DISCORD_GUILD_ID)

    async def close(self) -> None:
        """Cleanup on shutdown."""
        if self.http_runner:
            await self.http_runner.cleanup()
        await super().close()


def main() -> None:
    """Run the bot."""
    if not config.DISCORD_TOKEN:
        raise ValueError("DISCORD_TOKEN is required")
    if not config.DISCORD_GUILD_ID:
        logger.warning("DISCORD_GUILD_ID not set - tournament channels cannot be resolved")

    bot = RelayBot()
    bot.run(config.DISCORD_TOKEN)


if __name__ == "__main__":
    main()
