from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from fastapi import FastAPI, Header, HTTPException

from utils.constants import parse_ticket_topic

if TYPE_CHECKING:
    from core.bot import TicketBot


def _auth(x_api_key: str | None, expected: str) -> None:
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


def create_api_app(bot: TicketBot) -> FastAPI:
    app = FastAPI(title="Ticket Desk API", version="1.0.0")

    def _guild_or_404(guild_id: int) -> discord.Guild:
        guild = bot.get_guild(guild_id)
        if guild is None:
            raise HTTPException(status_code=404, detail="Guild not found")
        return guild

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/guilds/{guild_id}/tickets/open")
    async def open_tickets(guild_id: int, x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.fastapi.api_key)
        guild = _guild_or_404(guild_id)
        items = []
        for channel in bot.ticket_service.get_ticket_channels(guild):
            opener_id, category_name = parse_ticket_topic(channel.topic or "")
            items.append(
                {
                    "channel_id": channel.id,
                    "name": channel.name,
                    "opener_id": opener_id,
                    "category": category_name,
                }
            )
        return {"count": len(items), "items": items}

    @app.get("/guilds/{guild_id}/settings")
    async def guild_settings(guild_id: int, x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.fastapi.api_key)
        _guild_or_404(guild_id)
        settings = await bot.settings_repo.get_settings(guild_id)
        return {
            "ticket_limit": settings.ticket_limit,
            "log_channel_id": settings.log_channel_id,
            "categories": [
                {"name": category.name, "staff_roles": category.staff_roles} for category in settings.categories
            ],
        }

    return app
