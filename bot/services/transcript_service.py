from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, tzinfo

import discord

from utils.time import format_timestamp, resolve_timezone


class TranscriptService:
    """Plain-text rendering of a ticket channel's history."""

    def __init__(self, timezone: str | tzinfo = UTC) -> None:
        self.tz = resolve_timezone(timezone) if isinstance(timezone, str) else timezone

    async def collect(self, channel: discord.TextChannel, limit: int | None = 100) -> list[discord.Message]:
        """Fetch up to ``limit`` messages and return them oldest first."""
        messages: list[discord.Message] = []
        async for message in channel.history(limit=limit):
            messages.append(message)
        messages.reverse()
        return messages

    def render(self, messages: Iterable[discord.Message]) -> str:
        lines: list[str] = []
        for msg in messages:
            lines.append(f"[{format_timestamp(msg.created_at, self.tz)}] - {msg.author.name}")
            if msg.clean_content:
                lines.append(msg.clean_content)
            if msg.attachments:
                lines.append(", ".join(attachment.proxy_url for attachment in msg.attachments))
            lines.append("")
        return "".join(f"{line}\n" for line in lines)
