from __future__ import annotations

import logging
from collections.abc import Iterable

import discord
from discord.ext import commands

from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


class GuildSettingsEvents(commands.Cog):
    """Keeps a settings row for every guild the bot is in."""

    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def _seed(self, guilds: Iterable[discord.Guild]) -> int:
        seeded = 0
        for guild in guilds:
            await self.bot.settings_repo.ensure_guild(guild.id)
            seeded += 1
        return seeded

    @commands.Cog.listener("on_ready")
    async def seed_known_guilds(self) -> None:
        seeded = await self._seed(self.bot.guilds)
        LOGGER.info("Ticket settings ready for %s guild(s)", seeded)

    @commands.Cog.listener("on_guild_join")
    async def seed_joined_guild(self, guild: discord.Guild) -> None:
        await self._seed([guild])
        LOGGER.info("Joined guild %s (%s), default ticket settings created", guild.name, guild.id)

    @commands.Cog.listener("on_guild_remove")
    async def note_guild_leave(self, guild: discord.Guild) -> None:
        # Settings survive so a re-invite keeps the old configuration.
        LOGGER.info("Removed from guild %s (%s)", guild.name, guild.id)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(GuildSettingsEvents(bot))
