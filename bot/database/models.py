from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class TicketCategory:
    name: str
    staff_roles: list[int] = field(default_factory=list)


@dataclass(slots=True)
class GuildSettings:
    guild_id: int
    ticket_limit: int
    log_channel_id: int | None = None
    categories: list[TicketCategory] = field(default_factory=list)

    def get_category(self, name: str) -> TicketCategory | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None
