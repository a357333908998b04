from __future__ import annotations

from unittest.mock import MagicMock

import discord
import pytest

from database.models import GuildSettings
from helpers import GUILD_ID, make_channel, make_guild, make_interaction, make_service, make_user
from services.paste_service import PasteLink
from services.ticket_service import MSG_CLOSE_MISSING_PERMS, MSG_NOT_A_TICKET
from utils.constants import FORCE_CLOSE_REASON, CloseResult

PASTE = PasteLink(
    key="abc123",
    url="https://sourceb.in/abc123",
    short="https://srcb.in/abc123",
    raw="https://sourceb.in/raw/files/abc123/0",
)


def _field_map(embed: discord.Embed) -> dict[str, str]:
    return {field.name: field.value for field in embed.fields}


@pytest.mark.asyncio
async def test_close_without_permissions_leaves_channel() -> None:
    guild = make_guild()
    channel = make_channel(
        "ticket-1",
        "ticket|42|Default",
        guild=guild,
        permissions=discord.Permissions(read_message_history=True),
    )
    service = make_service()

    status = await service.close_ticket(channel, make_user(7, "mod"))

    assert status is CloseResult.MISSING_PERMISSIONS
    channel.delete.assert_not_awaited()
    service.deps.paste_service.post.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_posts_log_and_dms_opener() -> None:
    guild = make_guild()
    log_channel = make_channel("ticket-logs", None, channel_id=99)
    guild.get_channel = MagicMock(return_value=log_channel)
    channel = make_channel("ticket-3", "ticket|42|Billing", channel_id=5, guild=guild)
    opener = make_user(42, "opener")
    closer = make_user(7, "mod")
    service = make_service(
        settings=GuildSettings(guild_id=GUILD_ID, ticket_limit=10, log_channel_id=99),
        paste=PASTE,
        opener=opener,
    )

    status = await service.close_ticket(channel, closer, "resolved")

    assert status is CloseResult.SUCCESS
    channel.delete.assert_awaited_once()
    service.deps.paste_service.post.assert_awaited_once_with("transcript", "Ticket Logs for ticket-3")
    guild.get_channel.assert_called_once_with(99)

    log_channel.send.assert_awaited_once()
    log_kwargs = log_channel.send.await_args.kwargs
    assert log_kwargs["embed"].author.name == "Ticket Closed"
    assert _field_map(log_kwargs["embed"]) == {"Reason": "resolved", "Opened By": "opener", "Closed By": "mod"}
    assert log_kwargs["view"].children[0].url == PASTE.short

    opener.send.assert_awaited_once()
    dm_embed = opener.send.await_args.kwargs["embed"]
    assert dm_embed.description == "**Server:** Test Guild\n**Category:** Billing"
    assert "view" in opener.send.await_args.kwargs


@pytest.mark.asyncio
async def test_close_without_paste_or_reason() -> None:
    guild = make_guild()
    log_channel = make_channel("ticket-logs", None, channel_id=99)
    guild.get_channel = MagicMock(return_value=log_channel)
    channel = make_channel("ticket-1", "ticket|42|Default", guild=guild)
    service = make_service(
        settings=GuildSettings(guild_id=GUILD_ID, ticket_limit=10, log_channel_id=99),
        paste=None,
        opener=make_user(42, "opener"),
    )

    status = await service.close_ticket(channel, make_user(7, "mod"))

    assert status is CloseResult.SUCCESS
    log_kwargs = log_channel.send.await_args.kwargs
    assert "view" not in log_kwargs
    assert "Reason" not in _field_map(log_kwargs["embed"])


@pytest.mark.asyncio
async def test_close_without_log_channel_skips_log() -> None:
    guild = make_guild()
    channel = make_channel("ticket-1", "ticket|42|Default", guild=guild)
    service = make_service(opener=make_user(42, "opener"))

    status = await service.close_ticket(channel, make_user(7, "mod"))

    assert status is CloseResult.SUCCESS
    guild.get_channel.assert_not_called()


@pytest.mark.asyncio
async def test_close_swallows_dm_failure() -> None:
    guild = make_guild()
    channel = make_channel("ticket-1", "ticket|42|Default", guild=guild)
    opener = make_user(42, "opener")
    opener.send.side_effect = discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Cannot send messages")
    service = make_service(opener=opener)

    status = await service.close_ticket(channel, make_user(7, "mod"))

    assert status is CloseResult.SUCCESS
    channel.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_with_unknown_opener_reports_unknown() -> None:
    guild = make_guild()
    log_channel = make_channel("ticket-logs", None, channel_id=99)
    guild.get_channel = MagicMock(return_value=log_channel)
    channel = make_channel("ticket-1", "ticket|not-a-user|Default", guild=guild)
    service = make_service(settings=GuildSettings(guild_id=GUILD_ID, ticket_limit=10, log_channel_id=99))

    status = await service.close_ticket(channel, None)

    assert status is CloseResult.SUCCESS
    fields = _field_map(log_channel.send.await_args.kwargs["embed"])
    assert fields["Opened By"] == "Unknown"
    assert fields["Closed By"] == "Unknown"


@pytest.mark.asyncio
async def test_close_returns_error_when_delete_fails() -> None:
    guild = make_guild()
    channel = make_channel("ticket-1", "ticket|42|Default", guild=guild)
    channel.delete.side_effect = RuntimeError("boom")
    opener = make_user(42, "opener")
    service = make_service(opener=opener)

    status = await service.close_ticket(channel, make_user(7, "mod"))

    assert status is CloseResult.ERROR
    opener.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_all_tallies_results() -> None:
    guild = make_guild()
    log_channel = make_channel("ticket-logs", None, channel_id=99)
    guild.get_channel = MagicMock(return_value=log_channel)
    make_channel("ticket-1", "ticket|1|Default", channel_id=1, guild=guild)
    broken = make_channel("ticket-2", "ticket|2|Default", channel_id=2, guild=guild)
    broken.delete.side_effect = RuntimeError("boom")
    make_channel("ticket-3", "ticket|3|Default", channel_id=3, guild=guild)
    make_channel("general", None, channel_id=4, guild=guild)
    service = make_service(settings=GuildSettings(guild_id=GUILD_ID, ticket_limit=10, log_channel_id=99))

    success, failed = await service.close_all_tickets(guild, make_user(7, "mod"))

    assert (success, failed) == (2, 1)
    assert log_channel.send.await_count == 2
    reasons = {_field_map(call.kwargs["embed"])["Reason"] for call in log_channel.send.await_args_list}
    assert reasons == {FORCE_CLOSE_REASON}


@pytest.mark.asyncio
async def test_close_button_outside_ticket_is_rejected() -> None:
    guild = make_guild()
    channel = make_channel("general", None, guild=guild)
    service = make_service()
    interaction = make_interaction(guild, make_user(7), channel)

    await service.handle_ticket_close(interaction)

    interaction.followup.send.assert_awaited_once_with(MSG_NOT_A_TICKET, ephemeral=True)
    channel.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_button_reports_missing_permissions() -> None:
    guild = make_guild()
    channel = make_channel(
        "ticket-1", "ticket|42|Default", guild=guild, permissions=discord.Permissions(manage_channels=True)
    )
    service = make_service()
    interaction = make_interaction(guild, make_user(42), channel)

    await service.handle_ticket_close(interaction)

    interaction.response.defer.assert_awaited_once_with(ephemeral=True, thinking=True)
    interaction.followup.send.assert_awaited_once_with(MSG_CLOSE_MISSING_PERMS, ephemeral=True)
    channel.delete.assert_not_awaited()
