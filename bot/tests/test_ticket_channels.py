from __future__ import annotations

from unittest.mock import MagicMock

import discord
import pytest

from helpers import make_channel, make_guild, make_service
from utils.constants import build_ticket_name, build_ticket_topic, parse_ticket_topic


@pytest.mark.parametrize(
    ("name", "topic", "expected"),
    [
        ("ticket-1", "ticket|42|Default", True),
        ("ticket-7", "ticket|42|Billing", True),
        ("ticket-1", None, False),
        ("ticket-1", "support thread", False),
        ("general", "ticket|42|Default", False),
        ("tickets", "ticket|42|Default", False),
    ],
)
def test_is_ticket_channel_requires_prefix_and_marker(name: str, topic: str | None, expected: bool) -> None:
    channel = make_channel(name, topic)
    service = make_service()
    assert service.is_ticket_channel(channel) is expected


def test_is_ticket_channel_rejects_non_text_channels() -> None:
    voice = MagicMock(spec=discord.VoiceChannel)
    voice.name = "ticket-1"
    voice.topic = "ticket|42|Default"
    assert make_service().is_ticket_channel(voice) is False


def test_get_ticket_channels_filters_guild_channels() -> None:
    guild = make_guild()
    first = make_channel("ticket-1", "ticket|1|Default", 10, guild)
    make_channel("general", None, 11, guild)
    second = make_channel("ticket-2", "ticket|2|Billing", 12, guild)

    assert make_service().get_ticket_channels(guild) == [first, second]


def test_get_existing_ticket_channel_matches_opener_exactly() -> None:
    guild = make_guild()
    make_channel("ticket-1", "ticket|111|Default", 10, guild)
    own = make_channel("ticket-2", "ticket|11|Default", 11, guild)
    service = make_service()

    assert service.get_existing_ticket_channel(guild, 11) is own
    assert service.get_existing_ticket_channel(guild, 1) is None


def test_topic_helpers() -> None:
    assert build_ticket_name(3) == "ticket-3"
    assert build_ticket_topic(42, None) == "ticket|42|Default"
    assert build_ticket_topic(42, "Billing") == "ticket|42|Billing"
    assert parse_ticket_topic("ticket|42|Billing") == ("42", "Billing")
    assert parse_ticket_topic("ticket|42") == ("42", "Default")
    assert parse_ticket_topic("ticket|") == (None, "Default")
    assert parse_ticket_topic("ticket|42|Billing|VIP") == ("42", "Billing|VIP")


@pytest.mark.asyncio
async def test_parse_ticket_details_resolves_opener() -> None:
    opener = MagicMock()
    service = make_service(opener=opener)
    channel = make_channel("ticket-1", "ticket|42|Billing")

    details = await service.parse_ticket_details(channel)

    assert details is not None
    assert details.user is opener
    assert details.category_name == "Billing"
    service.deps.client.fetch_user.assert_awaited_once_with(42)


@pytest.mark.asyncio
async def test_parse_ticket_details_tolerates_bad_opener_id() -> None:
    service = make_service()
    channel = make_channel("ticket-1", "ticket|abc|Default")

    details = await service.parse_ticket_details(channel)

    assert details is not None
    assert details.user is None
    assert details.category_name == "Default"
    service.deps.client.fetch_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_parse_ticket_details_keeps_separator_in_category() -> None:
    details = await make_service().parse_ticket_details(make_channel("ticket-1", "ticket|42|Billing|VIP"))

    assert details is not None
    assert details.category_name == "Billing|VIP"


@pytest.mark.asyncio
async def test_parse_ticket_details_without_topic() -> None:
    assert await make_service().parse_ticket_details(make_channel("ticket-1", None)) is None
