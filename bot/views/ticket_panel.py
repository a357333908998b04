from __future__ import annotations

from typing import TYPE_CHECKING, cast

import discord

from utils.constants import TICKET_CREATE_CUSTOM_ID

if TYPE_CHECKING:
    from core.bot import TicketBot


class TicketPanelView(discord.ui.View):
    """Persistent "open a ticket" panel. One registration serves every guild."""

    def __init__(self) -> None:
        super().__init__(timeout=None)

    @discord.ui.button(
        label="Open a ticket",
        style=discord.ButtonStyle.success,
        emoji="🎫",
        custom_id=TICKET_CREATE_CUSTOM_ID,
    )
    async def open_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        bot = cast("TicketBot", interaction.client)
        await bot.ticket_service.handle_ticket_open(interaction)


def panel_embed(title: str, description: str, footer: str | None = None) -> discord.Embed:
    embed = discord.Embed(title=title, description=description, color=discord.Color.blurple())
    embed.set_author(name="Support Ticket")
    if footer:
        embed.set_footer(text=footer)
    return embed
