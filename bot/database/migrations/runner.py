from __future__ import annotations

import logging
from pathlib import Path

from database.base import Database

LOGGER = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent

BOOKKEEPING_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id TEXT PRIMARY KEY,
    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


async def _applied(database: Database) -> set[str]:
    rows = await database.fetchall("SELECT id FROM schema_migrations;")
    return {str(row["id"]) for row in rows}


def pending_migrations(migrations_path: Path, applied: set[str]) -> list[Path]:
    """SQL files not yet recorded, in lexical (numbered) order."""
    return [path for path in sorted(migrations_path.glob("*.sql")) if path.name not in applied]


async def run_migrations(database: Database, migrations_path: Path = MIGRATIONS_DIR) -> list[str]:
    await database.executescript(BOOKKEEPING_SQL)
    done: list[str] = []
    for path in pending_migrations(migrations_path, await _applied(database)):
        LOGGER.info("Applying migration %s", path.name)
        await database.executescript(path.read_text(encoding="utf-8"))
        await database.execute("INSERT INTO schema_migrations(id) VALUES (?);", [path.name])
        done.append(path.name)
    if not done:
        LOGGER.debug("Schema up to date")
    return done
