from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


class ConfigError(RuntimeError):
    pass


@dataclass(slots=True)
class DiscordConfig:
    token: str
    prefix: str = "!"
    application_id: int | None = None
    sync_commands_on_start: bool = True
    status_text: str = "Support tickets"
    activity_type: str = "watching"


@dataclass(slots=True)
class DatabaseConfig:
    url: str = "sqlite:///./data/tickets.db"
    pool_min_size: int = 1
    pool_max_size: int = 5
    timeout_seconds: int = 30


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "bot.log"
    max_bytes: int = 10_000_000
    backup_count: int = 10
    json_console: bool = False


@dataclass(slots=True)
class TicketConfig:
    default_limit: int = 10
    min_limit: int = 5
    select_timeout_seconds: float = 60
    transcript_message_limit: int | None = 100
    transcript_timezone: str = "UTC"
    create_color: int = 0x068ADD
    close_color: int = 0x068ADD


@dataclass(slots=True)
class PasteConfig:
    enabled: bool = True
    api_url: str = "https://sourceb.in/api/bins"
    base_url: str = "https://sourceb.in"
    short_url: str = "https://srcb.in"
    language_id: int = 222
    timeout_seconds: int = 10


@dataclass(slots=True)
class FastApiConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    api_key: str = ""


DEFAULT_EXTENSIONS = ["cogs.events", "cogs.tickets"]


@dataclass(slots=True)
class AppConfig:
    discord: DiscordConfig
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tickets: TicketConfig = field(default_factory=TicketConfig)
    paste: PasteConfig = field(default_factory=PasteConfig)
    fastapi: FastApiConfig = field(default_factory=FastApiConfig)
    enabled_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


def _env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


class _Section:
    """Typed reads from one YAML mapping, with optional environment overrides."""

    def __init__(self, raw: dict[str, Any], name: str) -> None:
        node = raw.get(name)
        if node is not None and not isinstance(node, dict):
            raise ConfigError(f"Config section '{name}' must be a mapping")
        self.name = name
        self.data: dict[str, Any] = node or {}

    def raw_value(self, key: str, env: str | None) -> Any:
        if env and _env(env) is not None:
            return _env(env)
        return self.data.get(key)

    def get_str(self, key: str, default: str, env: str | None = None) -> str:
        value = self.raw_value(key, env)
        return default if value is None else str(value)

    def get_int(self, key: str, default: int, env: str | None = None) -> int:
        value = self.raw_value(key, env)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{self.name}.{key} must be an integer, got {value!r}") from None

    def get_float(self, key: str, default: float) -> float:
        value = self.data.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{self.name}.{key} must be a number, got {value!r}") from None

    def get_bool(self, key: str, default: bool, env: str | None = None) -> bool:
        value = self.raw_value(key, env)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}

    def get_color(self, key: str, default: int) -> int:
        # 0x068ADD in YAML loads as an int; "#068ADD" arrives as a string.
        value = self.data.get(key)
        if value is None:
            return default
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip().lstrip("#"), 16)
        except ValueError:
            raise ConfigError(f"{self.name}.{key} must be a hex colour, got {value!r}") from None


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Missing config file: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def _discord(section: _Section) -> DiscordConfig:
    token = section.get_str("token", "", env="DISCORD_TOKEN")
    if not token or "${" in token:
        raise ConfigError("DISCORD_TOKEN is required")
    application_id = section.raw_value("application_id", "DISCORD_APPLICATION_ID")
    return DiscordConfig(
        token=token,
        prefix=section.get_str("prefix", "!", env="BOT_PREFIX"),
        application_id=int(application_id) if application_id else None,
        sync_commands_on_start=section.get_bool("sync_commands_on_start", True, env="SYNC_COMMANDS"),
        status_text=section.get_str("status_text", "Support tickets"),
        activity_type=section.get_str("activity_type", "watching"),
    )


def _tickets(section: _Section) -> TicketConfig:
    defaults = TicketConfig()
    message_limit: int | None = None
    # "all" walks the whole channel history.
    if str(section.data.get("transcript_message_limit", "")).strip().lower() != "all":
        message_limit = section.get_int("transcript_message_limit", 100)
    return TicketConfig(
        default_limit=section.get_int("default_limit", defaults.default_limit),
        min_limit=section.get_int("min_limit", defaults.min_limit),
        select_timeout_seconds=section.get_float("select_timeout_seconds", defaults.select_timeout_seconds),
        transcript_message_limit=message_limit,
        transcript_timezone=section.get_str("transcript_timezone", defaults.transcript_timezone),
        create_color=section.get_color("create_color", defaults.create_color),
        close_color=section.get_color("close_color", defaults.close_color),
    )


def _paste(section: _Section) -> PasteConfig:
    defaults = PasteConfig()
    return PasteConfig(
        enabled=section.get_bool("enabled", defaults.enabled),
        api_url=section.get_str("api_url", defaults.api_url, env="PASTE_API_URL"),
        base_url=section.get_str("base_url", defaults.base_url).rstrip("/"),
        short_url=section.get_str("short_url", defaults.short_url).rstrip("/"),
        language_id=section.get_int("language_id", defaults.language_id),
        timeout_seconds=section.get_int("timeout_seconds", defaults.timeout_seconds),
    )


def load_config(config_path: Path) -> AppConfig:
    """Build the runtime config from YAML, with `.env` and process env taking precedence."""
    load_dotenv(config_path.parent.parent / ".env")
    raw = _read_yaml(config_path)

    database = _Section(raw, "database")
    database_defaults = DatabaseConfig()
    logs = _Section(raw, "logging")
    api = _Section(raw, "fastapi")

    extensions = raw.get("enabled_extensions") or DEFAULT_EXTENSIONS
    if not isinstance(extensions, list):
        raise ConfigError("enabled_extensions must be a list")

    return AppConfig(
        discord=_discord(_Section(raw, "discord")),
        database=DatabaseConfig(
            url=database.get_str("url", database_defaults.url, env="DATABASE_URL"),
            pool_min_size=database.get_int("pool_min_size", database_defaults.pool_min_size),
            pool_max_size=database.get_int("pool_max_size", database_defaults.pool_max_size),
            timeout_seconds=database.get_int("timeout_seconds", database_defaults.timeout_seconds),
        ),
        logging=LoggingConfig(
            level=logs.get_str("level", "INFO", env="LOG_LEVEL"),
            directory=logs.get_str("directory", "logs"),
            file_name=logs.get_str("file_name", "bot.log"),
            max_bytes=logs.get_int("max_bytes", 10_000_000),
            backup_count=logs.get_int("backup_count", 10),
            json_console=logs.get_bool("json_console", False),
        ),
        tickets=_tickets(_Section(raw, "tickets")),
        paste=_paste(_Section(raw, "paste")),
        fastapi=FastApiConfig(
            enabled=api.get_bool("enabled", False),
            host=api.get_str("host", FastApiConfig().host),
            port=api.get_int("port", 8000),
            api_key=api.get_str("api_key", "", env="DASHBOARD_API_KEY"),
        ),
        enabled_extensions=[str(name) for name in extensions],
    )
