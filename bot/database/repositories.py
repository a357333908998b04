from __future__ import annotations

import json
from typing import Any

from database.base import Database
from database.models import GuildSettings, TicketCategory


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


def _row_to_category(row: dict[str, Any]) -> TicketCategory:
    return TicketCategory(
        name=row["name"],
        staff_roles=[int(x) for x in _json_load(row["staff_roles_json"], [])],
    )


class GuildSettingsRepository:
    """Per-guild ticket settings: open ticket limit, log channel and categories."""

    def __init__(self, db: Database, default_limit: int = 10) -> None:
        self.db = db
        self.default_limit = default_limit

    async def ensure_guild(self, guild_id: int) -> None:
        await self.db.execute(
            """
            INSERT INTO guild_settings(guild_id, ticket_limit)
            VALUES (?, ?)
            ON CONFLICT(guild_id) DO NOTHING;
            """,
            [guild_id, self.default_limit],
        )

    async def get_settings(self, guild_id: int) -> GuildSettings:
        await self.ensure_guild(guild_id)
        row = await self.db.fetchone(
            "SELECT ticket_limit, log_channel_id FROM guild_settings WHERE guild_id = ?;",
            [guild_id],
        )
        categories = await self.list_categories(guild_id)
        if not row:
            return GuildSettings(guild_id=guild_id, ticket_limit=self.default_limit, categories=categories)
        log_channel_id = row["log_channel_id"]
        return GuildSettings(
            guild_id=guild_id,
            ticket_limit=int(row["ticket_limit"]),
            log_channel_id=int(log_channel_id) if log_channel_id is not None else None,
            categories=categories,
        )

    async def list_configured_guild_ids(self) -> list[int]:
        rows = await self.db.fetchall("SELECT guild_id FROM guild_settings ORDER BY guild_id ASC;")
        return [int(row["guild_id"]) for row in rows]

    async def set_ticket_limit(self, guild_id: int, limit: int) -> None:
        await self.ensure_guild(guild_id)
        await self.db.execute(
            """
            UPDATE guild_settings
            SET ticket_limit = ?, updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = ?;
            """,
            [limit, guild_id],
        )

    async def set_log_channel(self, guild_id: int, channel_id: int | None) -> None:
        await self.ensure_guild(guild_id)
        await self.db.execute(
            """
            UPDATE guild_settings
            SET log_channel_id = ?, updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = ?;
            """,
            [channel_id, guild_id],
        )

    async def list_categories(self, guild_id: int) -> list[TicketCategory]:
        rows = await self.db.fetchall(
            """
            SELECT name, staff_roles_json FROM ticket_categories
            WHERE guild_id = ?
            ORDER BY position ASC, name ASC;
            """,
            [guild_id],
        )
        return [_row_to_category(row) for row in rows]

    async def add_category(self, guild_id: int, name: str, staff_roles: list[int] | None = None) -> bool:
        """Append a category; returns False when the name is already taken."""
        await self.ensure_guild(guild_id)
        existing = await self.db.fetchone(
            "SELECT name FROM ticket_categories WHERE guild_id = ? AND name = ?;",
            [guild_id, name],
        )
        if existing:
            return False
        position_row = await self.db.fetchone(
            "SELECT COALESCE(MAX(position), 0) AS last_position FROM ticket_categories WHERE guild_id = ?;",
            [guild_id],
        )
        position = int(position_row["last_position"]) + 1 if position_row else 1
        await self.db.execute(
            """
            INSERT INTO ticket_categories(guild_id, name, staff_roles_json, position)
            VALUES (?, ?, ?, ?);
            """,
            [guild_id, name, _json_dump(list(staff_roles or [])), position],
        )
        return True

    async def remove_category(self, guild_id: int, name: str) -> bool:
        removed = await self.db.execute(
            "DELETE FROM ticket_categories WHERE guild_id = ? AND name = ?;",
            [guild_id, name],
        )
        return removed > 0
