from __future__ import annotations

from enum import Enum

TICKET_CHANNEL_PREFIX = "ticket-"
TICKET_TOPIC_MARKER = "ticket|"
TICKET_TOPIC_SEPARATOR = "|"
DEFAULT_CATEGORY_NAME = "Default"
UNKNOWN_USER = "Unknown"

FORCE_CLOSE_REASON = "Force close all open tickets"

TICKET_CREATE_CUSTOM_ID = "TICKET_CREATE"
TICKET_CLOSE_CUSTOM_ID = "TICKET_CLOSE"
TICKET_MENU_CUSTOM_ID = "ticket-menu"

# Discord caps select menus at 25 options.
MAX_SELECT_OPTIONS = 25


class CloseResult(str, Enum):
    SUCCESS = "SUCCESS"
    MISSING_PERMISSIONS = "MISSING_PERMISSIONS"
    ERROR = "ERROR"


def build_ticket_topic(user_id: int, category_name: str | None) -> str:
    return TICKET_TOPIC_SEPARATOR.join(
        ["ticket", str(user_id), category_name or DEFAULT_CATEGORY_NAME]
    )


def build_ticket_name(ticket_number: int) -> str:
    return f"{TICKET_CHANNEL_PREFIX}{ticket_number}"


def parse_ticket_topic(topic: str) -> tuple[str | None, str]:
    """Split ``ticket|<user id>|<category>`` into the opener id and category name."""
    parts = topic.split(TICKET_TOPIC_SEPARATOR, 2)
    opener_id = parts[1] if len(parts) > 1 and parts[1] else None
    category_name = parts[2] if len(parts) > 2 and parts[2] else DEFAULT_CATEGORY_NAME
    return opener_id, category_name
