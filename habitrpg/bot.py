"""Entry point for the habit quest Discord bot."""

from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from .config import BotConfig
from .notifications import SharedStateHub
from .remote import FileRemoteStore
from .session import SessionRegistry
from .storage import DataStore

log = logging.getLogger(__name__)

EXTENSIONS = (
    "habitrpg.cogs.quests",
    "habitrpg.cogs.character",
    "habitrpg.cogs.economy",
    "habitrpg.cogs.skills",
)


class HabitQuestBot(commands.Bot):
    def __init__(self, config: BotConfig):
        intents = discord.Intents.default()
        super().__init__(command_prefix="!", intents=intents)
        self.config = config
        self.store = DataStore()
        self.hub = SharedStateHub()
        self.sessions = SessionRegistry(
            self.store,
            remote=FileRemoteStore(self.store) if config.remote_sync else None,
            hub=self.hub,
            timezone=config.timezone,
            day_start_hour=config.day_start_hour,
            sync_debounce=config.sync_debounce,
        )
        self._synced = False

    async def setup_hook(self) -> None:
        for extension in EXTENSIONS:
            await self.load_extension(extension)

    async def on_ready(self) -> None:
        if not self._synced:
            await self.tree.sync()
            self._synced = True
            log.info("Application commands synced")
        if self.user:
            log.info("Connected as %s (%s)", self.user, self.user.id)

    async def close(self) -> None:
        await self.sessions.close_all()
        await super().close()


async def main() -> None:
    config = BotConfig.from_env()
    logging.basicConfig(level=config.log_level)
    bot = HabitQuestBot(config)
    async with bot:
        await bot.start(config.token)


if __name__ == "__main__":
    asyncio.run(main())
