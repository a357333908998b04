from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

LOGGER = logging.getLogger(__name__)


class BotError(commands.CommandError):
    user_message: str = "An unexpected error occurred."

    def __init__(self, user_message: str | None = None) -> None:
        if user_message:
            self.user_message = user_message
        super().__init__(self.user_message)


class PermissionDeniedError(BotError):
    user_message = "You need the `Manage Server` permission to run this command."


class TicketNotFoundError(BotError):
    user_message = "This command can only be used in ticket channels."


class ValidationError(BotError):
    user_message = "The provided input is not valid."


async def send_error_response(
    target: commands.Context[commands.Bot] | discord.Interaction[commands.Bot], message: str
) -> None:
    embed = discord.Embed(title="Error", description=message, color=discord.Color.red())
    if isinstance(target, commands.Context):
        await target.reply(embed=embed, mention_author=False)
        return
    if target.response.is_done():
        await target.followup.send(embed=embed, ephemeral=True)
    else:
        await target.response.send_message(embed=embed, ephemeral=True)


def _unwrap(error: Exception) -> Exception:
    # Hybrid commands can wrap the raised exception twice.
    original = getattr(error, "original", None)
    while isinstance(original, Exception):
        error = original
        original = getattr(error, "original", None)
    return error


def humanize_command_error(error: Exception) -> str:
    error = _unwrap(error)
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, (commands.CommandOnCooldown, app_commands.CommandOnCooldown)):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    if isinstance(error, (commands.MissingPermissions, app_commands.MissingPermissions)):
        return "You are missing required Discord permissions."
    if isinstance(error, (commands.BotMissingPermissions, app_commands.BotMissingPermissions)):
        return "I am missing required Discord permissions."
    if isinstance(error, (commands.CheckFailure, app_commands.CheckFailure)):
        return "You are not authorized for this command."
    if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
        return "Command argument was invalid."
    return "An unexpected command error occurred."


def _log_command_failure(kind: str, command: object, guild: object, user_id: int | None, error: Exception) -> str:
    message = humanize_command_error(error)
    name = getattr(command, "qualified_name", None)
    guild_id = getattr(guild, "id", None)
    if isinstance(_unwrap(error), BotError):
        LOGGER.info("Command rejected. command=%s guild=%s user=%s reason=%s", name, guild_id, user_id, message)
    else:
        LOGGER.exception(
            "%s command failed. command=%s guild=%s user=%s", kind, name, guild_id, user_id, exc_info=error
        )
    return message


async def handle_prefix_command_error(
    ctx: commands.Context[commands.Bot], error: commands.CommandError
) -> None:
    message = _log_command_failure("Prefix", ctx.command, ctx.guild, ctx.author.id, error)
    await send_error_response(ctx, message)


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    user_id = interaction.user.id if interaction.user else None
    message = _log_command_failure("Slash", interaction.command, interaction.guild, user_id, error)
    await send_error_response(interaction, message)
