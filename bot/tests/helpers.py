from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import discord

from core.config import AppConfig, DiscordConfig, TicketConfig
from database.models import GuildSettings
from services.ticket_service import TicketService, TicketServiceDeps

GUILD_ID = 123


def make_config(**ticket_overrides: Any) -> AppConfig:
    return AppConfig(discord=DiscordConfig(token="x"), tickets=TicketConfig(**ticket_overrides))


def make_guild(guild_id: int = GUILD_ID) -> MagicMock:
    guild = MagicMock()
    guild.id = guild_id
    guild.name = "Test Guild"
    guild.icon = None
    guild.channels = []
    guild.default_role = MagicMock(name="everyone")
    guild.me = MagicMock(name="bot-member")
    guild.me.top_role = MagicMock(name="bot-role")
    guild.me.guild_permissions = discord.Permissions(manage_channels=True)
    guild.get_role = MagicMock(return_value=None)
    guild.get_channel = MagicMock(return_value=None)
    guild.create_text_channel = AsyncMock()
    return guild


def make_channel(
    name: str,
    topic: str | None,
    channel_id: int = 1,
    guild: MagicMock | None = None,
    permissions: discord.Permissions | None = None,
) -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.name = name
    channel.topic = topic
    channel.guild = guild
    channel.mention = f"<#{channel_id}>"
    channel.delete = AsyncMock()
    channel.send = AsyncMock(return_value=SimpleNamespace(jump_url=f"https://discord.com/channels/1/{channel_id}/1"))
    channel.permissions_for = MagicMock(
        return_value=permissions or discord.Permissions(manage_channels=True, read_message_history=True)
    )
    if guild is not None:
        guild.channels.append(channel)
    return channel


def make_user(user_id: int, name: str = "member") -> MagicMock:
    user = MagicMock()
    user.id = user_id
    user.name = name
    user.mention = f"<@{user_id}>"
    user.send = AsyncMock()
    return user


def make_service(
    config: AppConfig | None = None,
    settings: GuildSettings | None = None,
    paste: Any = None,
    opener: Any = None,
) -> TicketService:
    client = MagicMock()
    client.fetch_user = AsyncMock(return_value=opener)

    settings_repo = MagicMock()
    settings_repo.get_settings = AsyncMock(
        return_value=settings or GuildSettings(guild_id=GUILD_ID, ticket_limit=10)
    )

    paste_service = MagicMock()
    paste_service.post = AsyncMock(return_value=paste)

    transcript_service = MagicMock()
    transcript_service.collect = AsyncMock(return_value=[])
    transcript_service.render = MagicMock(return_value="transcript")

    deps = TicketServiceDeps(
        client=client,
        settings_repo=settings_repo,
        paste_service=paste_service,
        transcript_service=transcript_service,
    )
    return TicketService(config=config or make_config(), deps=deps)


def make_interaction(guild: MagicMock | None, user: MagicMock, channel: Any = None) -> MagicMock:
    interaction = MagicMock()
    interaction.guild = guild
    interaction.user = user
    interaction.channel = channel
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock(return_value=SimpleNamespace(id=555))
    interaction.edit_original_response = AsyncMock()
    interaction.client.wait_for = AsyncMock()
    return interaction
