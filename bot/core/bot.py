from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.config import AppConfig
from core.errors import handle_app_command_error, handle_prefix_command_error
from database.base import Database
from database.migrations.runner import run_migrations
from database.repositories import GuildSettingsRepository
from services.paste_service import PasteService
from services.ticket_service import TicketService, TicketServiceDeps
from services.transcript_service import TranscriptService

LOGGER = logging.getLogger(__name__)

ACTIVITY_TYPES = {
    "playing": discord.ActivityType.playing,
    "listening": discord.ActivityType.listening,
    "watching": discord.ActivityType.watching,
    "competing": discord.ActivityType.competing,
}


def _ticket_intents() -> discord.Intents:
    # Message content is needed for prefix commands and transcript text.
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    return intents


class TicketBot(commands.Bot):
    def __init__(self, config: AppConfig) -> None:
        super().__init__(
            command_prefix=commands.when_mentioned_or(config.discord.prefix),
            intents=_ticket_intents(),
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True, replied_user=False),
            help_command=None,
        )
        self.config = config
        self.database = Database(
            url=config.database.url,
            timeout_seconds=config.database.timeout_seconds,
            pool_min_size=config.database.pool_min_size,
            pool_max_size=config.database.pool_max_size,
        )

        # Wired in setup_hook, after the database is reachable.
        self.settings_repo: GuildSettingsRepository
        self.paste_service: PasteService
        self.transcript_service: TranscriptService
        self.ticket_service: TicketService

    def _wire_services(self) -> None:
        tickets = self.config.tickets
        self.settings_repo = GuildSettingsRepository(self.database, default_limit=tickets.default_limit)
        self.paste_service = PasteService(self.config.paste)
        self.transcript_service = TranscriptService(tickets.transcript_timezone)
        self.ticket_service = TicketService(
            self.config,
            TicketServiceDeps(
                client=self,
                settings_repo=self.settings_repo,
                paste_service=self.paste_service,
                transcript_service=self.transcript_service,
            ),
        )

    async def _load_extensions(self) -> None:
        for name in self.config.enabled_extensions:
            try:
                await self.load_extension(name)
            except commands.ExtensionAlreadyLoaded:
                LOGGER.warning("Extension %s was already loaded", name)
            except commands.ExtensionError:
                LOGGER.exception("Could not load extension %s", name)
            else:
                LOGGER.info("Loaded extension %s", name)

    async def setup_hook(self) -> None:
        await self.database.connect()
        applied = await run_migrations(self.database)
        if applied:
            LOGGER.info("Applied %s migration(s): %s", len(applied), ", ".join(applied))

        self._wire_services()
        await self._load_extensions()

        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]
        if self.config.discord.sync_commands_on_start:
            synced = await self.tree.sync()
            LOGGER.info("Synced %s application commands", len(synced))

    async def on_ready(self) -> None:
        LOGGER.info("Logged in as %s (%s) in %s guild(s)", self.user, getattr(self.user, "id", "n/a"), len(self.guilds))
        activity = discord.Activity(
            type=ACTIVITY_TYPES.get(self.config.discord.activity_type.lower(), discord.ActivityType.watching),
            name=self.config.discord.status_text,
        )
        await self.change_presence(status=discord.Status.online, activity=activity)

    async def on_command_error(self, ctx: commands.Context[commands.Bot], error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return
        if ctx.command and ctx.command.has_error_handler():
            return
        await handle_prefix_command_error(ctx, error)

    async def close(self) -> None:
        try:
            await super().close()
        finally:
            await self.database.close()
