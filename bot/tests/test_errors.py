from __future__ import annotations

import logging

from discord.ext import commands

from core.errors import TicketNotFoundError, ValidationError, humanize_command_error
from core.logging import JsonFormatter, log_error


def test_bot_errors_surface_their_message() -> None:
    assert humanize_command_error(ValidationError("Ticket limit cannot be less than 5.")) == (
        "Ticket limit cannot be less than 5."
    )
    assert humanize_command_error(TicketNotFoundError()) == "This command can only be used in ticket channels."


def test_wrapped_errors_are_unwrapped() -> None:
    inner = commands.CommandInvokeError(ValidationError("nope"))
    outer = commands.HybridCommandError(inner)
    assert humanize_command_error(outer) == "nope"


def test_unexpected_errors_are_generic() -> None:
    assert humanize_command_error(commands.CommandInvokeError(RuntimeError("db down"))) == (
        "An unexpected command error occurred."
    )


def test_log_error_records_context_and_traceback(caplog) -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        with caplog.at_level(logging.ERROR, logger="tickets.errors"):
            log_error("close_ticket", exc)

    record = caplog.records[-1]
    assert record.context == "close_ticket"
    assert record.exc_info is not None
    formatted = JsonFormatter().format(record)
    assert '"context": "close_ticket"' in formatted
    assert "RuntimeError: boom" in formatted
