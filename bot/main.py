from __future__ import annotations

import asyncio
import os
from pathlib import Path

import uvicorn

from core.api import create_api_app
from core.bot import TicketBot
from core.config import AppConfig, load_config
from core.logging import configure_logging

CONFIG_PATH_ENV = "TICKET_CONFIG_PATH"


def _config_path() -> Path:
    override = os.getenv(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parent / "config" / "config.yaml"


def _api_server(bot: TicketBot, config: AppConfig) -> uvicorn.Server:
    return uvicorn.Server(
        uvicorn.Config(
            app=create_api_app(bot),
            host=config.fastapi.host,
            port=config.fastapi.port,
            log_level=config.logging.level.lower(),
        )
    )


async def run(config: AppConfig) -> None:
    bot = TicketBot(config=config)
    async with bot:
        server = _api_server(bot, config) if config.fastapi.enabled else None
        api_task = asyncio.create_task(server.serve()) if server else None
        try:
            await bot.start(config.discord.token)
        finally:
            if server and api_task:
                server.should_exit = True
                await asyncio.gather(api_task, return_exceptions=True)


def main() -> None:
    config = load_config(_config_path())
    configure_logging(config.logging)
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
