from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import discord

from core.config import AppConfig
from core.logging import log_error
from database.models import TicketCategory
from database.repositories import GuildSettingsRepository
from services.paste_service import PasteService
from services.transcript_service import TranscriptService
from utils.constants import (
    FORCE_CLOSE_REASON,
    TICKET_CHANNEL_PREFIX,
    TICKET_MENU_CUSTOM_ID,
    TICKET_TOPIC_MARKER,
    UNKNOWN_USER,
    CloseResult,
    build_ticket_name,
    build_ticket_topic,
    parse_ticket_topic,
)
from utils.embeds import (
    ticket_closed_dm_embed,
    ticket_closed_embed,
    ticket_created_dm_embed,
    ticket_welcome_embed,
)
from views.ticket_controls import CategorySelectView, TicketControlsView, link_button_view

LOGGER = logging.getLogger(__name__)

MSG_OPEN_MISSING_PERMS = (
    "Cannot create a ticket channel, I am missing the `Manage Channels` permission. "
    "Please contact the server staff for help!"
)
MSG_ALREADY_OPEN = "You already have an open ticket!"
MSG_TOO_MANY = "There are too many open tickets right now. Please try again later!"
MSG_CATEGORY_PROMPT = "Please choose the ticket category"
MSG_SELECT_TIMEOUT = "Timed out. Please try again."
MSG_PROCESSING = "Processing..."
MSG_CREATED = "Your ticket has been created! 🔥"
MSG_OPEN_FAILED = "Failed to create the ticket channel, an error occurred!"
MSG_CLOSE_MISSING_PERMS = "Cannot close the ticket, I am missing permissions. Please contact the server staff for help!"
MSG_CLOSE_FAILED = "Failed to close the ticket, an error occurred!"
MSG_NOT_A_TICKET = "This is not a ticket channel."


@dataclass(slots=True)
class TicketServiceDeps:
    client: discord.Client
    settings_repo: GuildSettingsRepository
    paste_service: PasteService
    transcript_service: TranscriptService


@dataclass(slots=True)
class TicketDetails:
    user: discord.User | None
    category_name: str


class TicketService:
    """Ticket lifecycle over live channel state.

    No ticket records are kept in memory or in the database: a ticket is any text
    channel whose name and topic carry the ticket markers, and the topic holds
    ``ticket|<opener id>|<category>``. Settings (limit, log channel, categories)
    come from the guild settings repository.
    """

    def __init__(self, config: AppConfig, deps: TicketServiceDeps) -> None:
        self.config = config
        self.deps = deps

    # Lookup

    @staticmethod
    def is_ticket_channel(channel: Any) -> bool:
        if not isinstance(channel, discord.TextChannel):
            return False
        topic = channel.topic or ""
        return channel.name.startswith(TICKET_CHANNEL_PREFIX) and topic.startswith(TICKET_TOPIC_MARKER)

    def get_ticket_channels(self, guild: discord.Guild) -> list[discord.TextChannel]:
        return [channel for channel in guild.channels if self.is_ticket_channel(channel)]

    def get_existing_ticket_channel(self, guild: discord.Guild, user_id: int) -> discord.TextChannel | None:
        wanted = str(user_id)
        for channel in self.get_ticket_channels(guild):
            opener_id, _ = parse_ticket_topic(channel.topic or "")
            if opener_id == wanted:
                return channel
        return None

    async def parse_ticket_details(self, channel: discord.TextChannel) -> TicketDetails | None:
        if not channel.topic:
            return None
        opener_id, category_name = parse_ticket_topic(channel.topic)

        user: discord.User | None = None
        try:
            user = await self.deps.client.fetch_user(int(opener_id or ""))
        except (ValueError, discord.HTTPException):
            LOGGER.debug("Could not resolve ticket opener %r in channel %s", opener_id, channel.id)
        return TicketDetails(user=user, category_name=category_name)

    # Closing

    async def close_ticket(
        self,
        channel: discord.TextChannel,
        closed_by: discord.abc.User | None,
        reason: str | None = None,
    ) -> CloseResult:
        guild = channel.guild
        try:
            permissions = channel.permissions_for(guild.me)
            if not (permissions.manage_channels and permissions.read_message_history):
                return CloseResult.MISSING_PERMISSIONS

            settings = await self.deps.settings_repo.get_settings(guild.id)
            messages = await self.deps.transcript_service.collect(
                channel, limit=self.config.tickets.transcript_message_limit
            )
            transcript = self.deps.transcript_service.render(messages)
            paste = await self.deps.paste_service.post(transcript, f"Ticket Logs for {channel.name}")
            details = await self.parse_ticket_details(channel)

            extra: dict[str, Any] = {}
            if paste:
                extra["view"] = link_button_view("Transcript", paste.short)

            await channel.delete(reason=f"Ticket closed by {closed_by or 'system'}")

            opener = details.user if details else None
            notice = ticket_closed_embed(
                opened_by=opener.name if opener else UNKNOWN_USER,
                closed_by=closed_by.name if closed_by else UNKNOWN_USER,
                color=self.config.tickets.close_color,
                reason=reason,
            )

            if settings.log_channel_id:
                await self._send_log_notice(guild, settings.log_channel_id, notice, extra)

            if opener and details:
                dm_notice = ticket_closed_dm_embed(notice, guild, details.category_name)
                try:
                    await opener.send(embed=dm_notice, **extra)
                except discord.HTTPException:
                    LOGGER.debug("Could not DM ticket opener %s", opener.id)

            LOGGER.info(
                "Ticket closed. guild=%s channel=%s closed_by=%s",
                guild.id,
                channel.name,
                getattr(closed_by, "id", None),
            )
            return CloseResult.SUCCESS
        except Exception as exc:
            log_error("close_ticket", exc)
            return CloseResult.ERROR

    async def _send_log_notice(
        self,
        guild: discord.Guild,
        log_channel_id: int,
        notice: discord.Embed,
        extra: dict[str, Any],
    ) -> None:
        log_channel = guild.get_channel(log_channel_id)
        if not isinstance(log_channel, discord.TextChannel):
            LOGGER.warning("Ticket log channel %s not found in guild %s", log_channel_id, guild.id)
            return
        try:
            await log_channel.send(embed=notice, **extra)
        except discord.HTTPException:
            LOGGER.warning("Could not post ticket log in channel %s", log_channel_id, exc_info=True)

    async def close_all_tickets(self, guild: discord.Guild, actor: discord.abc.User | None) -> tuple[int, int]:
        success = 0
        failed = 0
        # Strictly one ticket at a time.
        for channel in self.get_ticket_channels(guild):
            status = await self.close_ticket(channel, actor, FORCE_CLOSE_REASON)
            if status is CloseResult.SUCCESS:
                success += 1
            else:
                failed += 1
        return success, failed

    # Opening

    def build_overwrites(
        self,
        guild: discord.Guild,
        opener: discord.abc.Snowflake,
        staff_role_ids: list[int],
    ) -> dict[Any, discord.PermissionOverwrite]:
        access = discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)
        bot_target: Any = guild.me.top_role
        if bot_target == guild.default_role:
            bot_target = guild.me
        overwrites: dict[Any, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            opener: access,
            bot_target: access,
        }
        for role_id in staff_role_ids:
            role = guild.get_role(role_id)
            if role is None:
                continue
            overwrites[role] = access
        return overwrites

    async def await_category_selection(
        self,
        interaction: discord.Interaction,
        categories: list[TicketCategory],
    ) -> str | None:
        """Prompt for a category and wait for one pick; ``None`` means the wait timed out."""
        timeout = self.config.tickets.select_timeout_seconds
        view = CategorySelectView(categories, timeout=timeout)
        prompt = await interaction.followup.send(content=MSG_CATEGORY_PROMPT, view=view, ephemeral=True, wait=True)

        def check(component: discord.Interaction) -> bool:
            data = component.data or {}
            return (
                data.get("custom_id") == TICKET_MENU_CUSTOM_ID
                and component.user.id == interaction.user.id
                and getattr(component.message, "id", None) == prompt.id
            )

        try:
            selection = await interaction.client.wait_for("interaction", check=check, timeout=timeout)
        except asyncio.TimeoutError:
            return None
        finally:
            view.stop()

        await selection.response.defer()
        await interaction.edit_original_response(content=MSG_PROCESSING, view=None)
        values = (selection.data or {}).get("values") or []
        return str(values[0]) if values else None

    async def handle_ticket_open(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        guild = interaction.guild
        user = interaction.user
        if guild is None:
            return

        if not guild.me.guild_permissions.manage_channels:
            await interaction.followup.send(MSG_OPEN_MISSING_PERMS, ephemeral=True)
            return

        if self.get_existing_ticket_channel(guild, user.id):
            await interaction.followup.send(MSG_ALREADY_OPEN, ephemeral=True)
            return

        settings = await self.deps.settings_repo.get_settings(guild.id)

        existing = len(self.get_ticket_channels(guild))
        if existing > settings.ticket_limit:
            await interaction.followup.send(MSG_TOO_MANY, ephemeral=True)
            return

        category_name: str | None = None
        staff_role_ids: list[int] = []
        if settings.categories:
            category_name = await self.await_category_selection(interaction, settings.categories)
            if category_name is None:
                await interaction.edit_original_response(content=MSG_SELECT_TIMEOUT, view=None)
                return
            category = settings.get_category(category_name)
            staff_role_ids = list(category.staff_roles) if category else []

        try:
            ticket_number = existing + 1
            channel = await guild.create_text_channel(
                name=build_ticket_name(ticket_number),
                topic=build_ticket_topic(user.id, category_name),
                overwrites=self.build_overwrites(guild, user, staff_role_ids),
                reason=f"Ticket opened by {user} ({user.id})",
            )
            LOGGER.info("Ticket opened. guild=%s channel=%s user=%s", guild.id, channel.id, user.id)

            sent = await channel.send(
                content=user.mention,
                embed=ticket_welcome_embed(ticket_number, user, category_name),
                view=TicketControlsView(),
            )

            dm_embed = ticket_created_dm_embed(guild, category_name, self.config.tickets.create_color)
            try:
                await user.send(embed=dm_embed, view=link_button_view("View Channel", sent.jump_url))
            except discord.HTTPException:
                LOGGER.debug("Could not DM ticket opener %s", user.id)

            await interaction.edit_original_response(content=MSG_CREATED)
        except Exception as exc:
            log_error("handle_ticket_open", exc)
            await interaction.edit_original_response(content=MSG_OPEN_FAILED, view=None)

    async def handle_ticket_close(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        channel = interaction.channel
        if not isinstance(channel, discord.TextChannel) or not self.is_ticket_channel(channel):
            await interaction.followup.send(MSG_NOT_A_TICKET, ephemeral=True)
            return

        status = await self.close_ticket(channel, interaction.user)
        if status is CloseResult.MISSING_PERMISSIONS:
            await interaction.followup.send(MSG_CLOSE_MISSING_PERMS, ephemeral=True)
        elif status is CloseResult.ERROR:
            await interaction.followup.send(MSG_CLOSE_FAILED, ephemeral=True)
