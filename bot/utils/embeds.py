from __future__ import annotations

import discord

from utils.time import utc_now


def make_embed(
    title: str,
    description: str,
    color: discord.Color | int | None = None,
    footer: str | None = None,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=utc_now(),
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def success_embed(message: str) -> discord.Embed:
    return make_embed(title="Success", description=message, color=discord.Color.green())


def error_embed(message: str) -> discord.Embed:
    return make_embed(title="Error", description=message, color=discord.Color.red())


def _guild_icon_url(guild: discord.Guild) -> str | None:
    return guild.icon.url if guild.icon else None


def ticket_welcome_embed(ticket_number: int, opener: discord.abc.User, category_name: str | None) -> discord.Embed:
    lines = [
        f"Hello {opener.mention}",
        "Support will be with you shortly.",
    ]
    if category_name:
        lines.append(f"\n**Category:** {category_name}")
    embed = discord.Embed(description="\n".join(lines))
    embed.set_author(name=f"Ticket #{ticket_number}")
    embed.set_footer(text="You may close your ticket anytime by clicking the button below")
    return embed


def ticket_created_dm_embed(guild: discord.Guild, category_name: str | None, color: int) -> discord.Embed:
    description = f"**Server:** {guild.name}"
    if category_name:
        description += f"\n**Category:** {category_name}"
    embed = discord.Embed(description=description, color=color)
    embed.set_author(name="Ticket Created")
    icon_url = _guild_icon_url(guild)
    if icon_url:
        embed.set_thumbnail(url=icon_url)
    return embed


def ticket_closed_embed(
    opened_by: str,
    closed_by: str,
    color: int,
    reason: str | None = None,
) -> discord.Embed:
    embed = discord.Embed(color=color)
    embed.set_author(name="Ticket Closed")
    if reason:
        embed.add_field(name="Reason", value=reason[:1024], inline=False)
    embed.add_field(name="Opened By", value=opened_by, inline=True)
    embed.add_field(name="Closed By", value=closed_by, inline=True)
    return embed


def ticket_closed_dm_embed(notice: discord.Embed, guild: discord.Guild, category_name: str) -> discord.Embed:
    embed = notice.copy()
    embed.description = f"**Server:** {guild.name}\n**Category:** {category_name}"
    icon_url = _guild_icon_url(guild)
    if icon_url:
        embed.set_thumbnail(url=icon_url)
    return embed
