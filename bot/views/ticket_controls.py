from __future__ import annotations

from typing import TYPE_CHECKING, cast

import discord

from database.models import TicketCategory
from utils.constants import MAX_SELECT_OPTIONS, TICKET_CLOSE_CUSTOM_ID, TICKET_MENU_CUSTOM_ID

if TYPE_CHECKING:
    from core.bot import TicketBot


def link_button_view(label: str, url: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(label=label, url=url, style=discord.ButtonStyle.link))
    return view


class TicketControlsView(discord.ui.View):
    """Persistent close button posted in every new ticket channel."""

    def __init__(self) -> None:
        super().__init__(timeout=None)

    @discord.ui.button(
        label="Close Ticket",
        style=discord.ButtonStyle.primary,
        emoji="🔒",
        custom_id=TICKET_CLOSE_CUSTOM_ID,
    )
    async def close_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        bot = cast("TicketBot", interaction.client)
        await bot.ticket_service.handle_ticket_close(interaction)


class CategorySelectView(discord.ui.View):
    """One-shot category picker; the selection itself is awaited by the ticket service."""

    def __init__(self, categories: list[TicketCategory], timeout: float) -> None:
        super().__init__(timeout=timeout)
        self.menu: discord.ui.Select = discord.ui.Select(
            custom_id=TICKET_MENU_CUSTOM_ID,
            placeholder="Please choose the ticket category",
            min_values=1,
            max_values=1,
            options=[
                discord.SelectOption(label=category.name[:100], value=category.name[:100])
                for category in categories[:MAX_SELECT_OPTIONS]
            ],
        )
        self.add_item(self.menu)
