from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import PermissionDeniedError, TicketNotFoundError, ValidationError
from utils.constants import TICKET_TOPIC_SEPARATOR, CloseResult
from utils.embeds import make_embed, success_embed
from views.ticket_controls import TicketControlsView
from views.ticket_panel import TicketPanelView, panel_embed

LOGGER = logging.getLogger(__name__)

MODERATOR_CLOSE_REASON = "Closed by a moderator"
# Select option labels and values are capped at 100 characters.
CATEGORY_NAME_MAX_LENGTH = 100


def _can_manage(member: discord.Member) -> bool:
    return member.guild_permissions.administrator or member.guild_permissions.manage_guild


def _normalize_category_name(raw: str) -> str:
    return raw.strip()[:CATEGORY_NAME_MAX_LENGTH]


def _parse_role_ids(raw: str | None) -> list[int]:
    if not raw:
        return []
    role_ids: list[int] = []
    for chunk in raw.replace(" ", ",").split(","):
        chunk = chunk.strip().strip("<@&>")
        if not chunk:
            continue
        if not chunk.isdigit():
            raise ValidationError(f"`{chunk}` is not a valid role id.")
        role_ids.append(int(chunk))
    return role_ids


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        # custom_ids are global, so one instance of each view covers every guild.
        self.bot.add_view(TicketPanelView())
        self.bot.add_view(TicketControlsView())

    def _assert_manager(self, ctx: commands.Context[TicketBot]) -> discord.Guild:
        if not ctx.guild or not isinstance(ctx.author, discord.Member):
            raise ValidationError("This command can only be used inside a server.")
        if not _can_manage(ctx.author):
            raise PermissionDeniedError()
        return ctx.guild

    def _current_ticket(self, ctx: commands.Context[TicketBot]) -> discord.TextChannel:
        channel = ctx.channel
        if not isinstance(channel, discord.TextChannel) or not self.bot.ticket_service.is_ticket_channel(channel):
            raise TicketNotFoundError()
        return channel

    @staticmethod
    def _assert_can_post(channel: discord.TextChannel) -> None:
        permissions = channel.permissions_for(channel.guild.me)
        if not (permissions.view_channel and permissions.send_messages and permissions.embed_links):
            raise ValidationError(f"I need `View Channel`, `Send Messages` and `Embed Links` in {channel.mention}.")

    @commands.hybrid_group(name="ticket", with_app_command=True, description="Ticket system commands.")
    async def ticket(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Commands",
                    "`/ticket setup <channel>` post the ticket panel\n"
                    "`/ticket log <channel>` set the log channel\n"
                    "`/ticket limit <amount>` set the open ticket limit\n"
                    "`/ticket close [reason]` close the current ticket\n"
                    "`/ticket closeall` close every open ticket\n"
                    "`/ticket add <member>` / `/ticket remove <member>`\n"
                    "`/ticketcat list|add|remove` manage categories",
                ),
                mention_author=False,
            )

    @ticket.command(name="setup", description="Post the ticket panel in a channel.")
    async def ticket_setup(
        self,
        ctx: commands.Context[TicketBot],
        channel: discord.TextChannel,
        title: str = "Support Ticket",
        description: str = "Please use the button below to create a ticket",
        footer: str | None = None,
    ) -> None:
        self._assert_manager(ctx)
        self._assert_can_post(channel)
        await channel.send(embed=panel_embed(title[:256], description[:4000], footer), view=TicketPanelView())
        await ctx.reply(embed=success_embed(f"Ticket panel posted in {channel.mention}"), mention_author=False)

    @ticket.command(name="log", description="Set the channel that receives ticket close logs.")
    async def ticket_log(self, ctx: commands.Context[TicketBot], channel: discord.TextChannel) -> None:
        guild = self._assert_manager(ctx)
        self._assert_can_post(channel)
        await self.bot.settings_repo.set_log_channel(guild.id, channel.id)
        await ctx.reply(embed=success_embed(f"Ticket logs will be sent to {channel.mention}"), mention_author=False)

    @ticket.command(name="limit", description="Set the maximum number of concurrent open tickets.")
    async def ticket_limit(self, ctx: commands.Context[TicketBot], amount: int) -> None:
        guild = self._assert_manager(ctx)
        min_limit = self.bot.config.tickets.min_limit
        if amount < min_limit:
            raise ValidationError(f"Ticket limit cannot be less than {min_limit}.")
        await self.bot.settings_repo.set_ticket_limit(guild.id, amount)
        await ctx.reply(embed=success_embed(f"Ticket limit set to `{amount}`"), mention_author=False)

    @ticket.command(name="close", description="Close the current ticket.")
    async def ticket_close(self, ctx: commands.Context[TicketBot], *, reason: str | None = None) -> None:
        self._assert_manager(ctx)
        channel = self._current_ticket(ctx)
        await ctx.defer(ephemeral=True)
        status = await self.bot.ticket_service.close_ticket(channel, ctx.author, reason or MODERATOR_CLOSE_REASON)
        if status is CloseResult.MISSING_PERMISSIONS:
            raise ValidationError("I do not have permission to close tickets.")
        if status is CloseResult.ERROR:
            raise ValidationError("Failed to close the ticket, an error occurred!")

    @ticket.command(name="closeall", description="Force close every open ticket.")
    async def ticket_close_all(self, ctx: commands.Context[TicketBot]) -> None:
        guild = self._assert_manager(ctx)
        await ctx.defer(ephemeral=True)
        success, failed = await self.bot.ticket_service.close_all_tickets(guild, ctx.author)
        LOGGER.info("Close-all finished. guild=%s success=%s failed=%s", guild.id, success, failed)
        try:
            await ctx.reply(
                embed=success_embed(f"Completed! Success: `{success}` Failed: `{failed}`"),
                mention_author=False,
            )
        except discord.NotFound:
            # The command was run inside a ticket that has just been deleted.
            LOGGER.debug("Close-all reply channel no longer exists")

    @ticket.command(name="add", description="Give a member or role access to the current ticket.")
    async def ticket_add(self, ctx: commands.Context[TicketBot], target: discord.Member | discord.Role) -> None:
        self._assert_manager(ctx)
        channel = self._current_ticket(ctx)
        await channel.set_permissions(
            target,
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            reason=f"Added to ticket by {ctx.author}",
        )
        await ctx.reply(embed=success_embed(f"Added {target.mention} to this ticket."), mention_author=False)

    @ticket.command(name="remove", description="Remove a member or role from the current ticket.")
    async def ticket_remove(self, ctx: commands.Context[TicketBot], target: discord.Member | discord.Role) -> None:
        self._assert_manager(ctx)
        channel = self._current_ticket(ctx)
        await channel.set_permissions(
            target,
            view_channel=False,
            send_messages=False,
            reason=f"Removed from ticket by {ctx.author}",
        )
        await ctx.reply(embed=success_embed(f"Removed {target.mention} from this ticket."), mention_author=False)

    @commands.hybrid_group(name="ticketcat", with_app_command=True, description="Ticket category commands.")
    async def ticketcat(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await self.ticketcat_list(ctx)

    @ticketcat.command(name="list", description="List the configured ticket categories.")
    async def ticketcat_list(self, ctx: commands.Context[TicketBot]) -> None:
        guild = self._assert_manager(ctx)
        settings = await self.bot.settings_repo.get_settings(guild.id)
        if not settings.categories:
            await ctx.reply(embed=make_embed("Ticket Categories", "No categories configured."), mention_author=False)
            return
        lines = []
        for category in settings.categories:
            roles = ", ".join(f"<@&{role_id}>" for role_id in category.staff_roles) or "None"
            lines.append(f"**{category.name}**\nStaff: {roles}")
        await ctx.reply(embed=make_embed("Ticket Categories", "\n\n".join(lines)), mention_author=False)

    @ticketcat.command(name="add", description="Add a ticket category.")
    async def ticketcat_add(
        self, ctx: commands.Context[TicketBot], name: str, staff_roles: str | None = None
    ) -> None:
        guild = self._assert_manager(ctx)
        name = _normalize_category_name(name)
        if not name:
            raise ValidationError("Category name cannot be empty.")
        if TICKET_TOPIC_SEPARATOR in name:
            raise ValidationError(f"Category names cannot contain `{TICKET_TOPIC_SEPARATOR}`.")
        role_ids = _parse_role_ids(staff_roles)
        missing = [role_id for role_id in role_ids if guild.get_role(role_id) is None]
        if missing:
            raise ValidationError(f"Unknown role id(s): {', '.join(str(role_id) for role_id in missing)}")
        added = await self.bot.settings_repo.add_category(guild.id, name, role_ids)
        if not added:
            raise ValidationError(f"Category `{name}` already exists.")
        await ctx.reply(embed=success_embed(f"Category `{name}` added."), mention_author=False)

    @ticketcat.command(name="remove", description="Remove a ticket category.")
    async def ticketcat_remove(self, ctx: commands.Context[TicketBot], name: str) -> None:
        guild = self._assert_manager(ctx)
        removed = await self.bot.settings_repo.remove_category(guild.id, _normalize_category_name(name))
        if not removed:
            raise ValidationError(f"Category `{name}` does not exist.")
        await ctx.reply(embed=success_embed(f"Category `{name}` removed."), mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
