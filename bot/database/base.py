from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite
import asyncpg

LOGGER = logging.getLogger(__name__)

SQLITE_SCHEME = "sqlite:///"
POSTGRES_SCHEMES = ("postgresql://", "postgres://")

Params = Sequence[Any] | None


@dataclass(slots=True)
class DatabaseDsn:
    driver: str
    value: str


def parse_database_dsn(url: str) -> DatabaseDsn:
    if url.startswith(SQLITE_SCHEME):
        return DatabaseDsn(driver="sqlite", value=url[len(SQLITE_SCHEME):])
    if url.startswith(POSTGRES_SCHEMES):
        return DatabaseDsn(driver="postgresql", value=url)
    raise ValueError(f"Unsupported database URL {url!r}; expected sqlite:/// or postgresql://")


def qmark_to_dollar(query: str) -> str:
    """Rewrite sqlite style `?` placeholders into asyncpg's `$1, $2, ...`."""
    head, *rest = query.split("?")
    return head + "".join(f"${number}{chunk}" for number, chunk in enumerate(rest, start=1))


def _affected_rows(status: str) -> int:
    # asyncpg reports a command tag such as "DELETE 1" or "INSERT 0 1".
    count = status.rsplit(" ", 1)[-1]
    return int(count) if count.isdigit() else 0


class Database:
    """Async access to SQLite or PostgreSQL behind one `?`-placeholder dialect."""

    def __init__(self, url: str, timeout_seconds: int = 30, pool_min_size: int = 1, pool_max_size: int = 5) -> None:
        self._dsn = parse_database_dsn(url)
        self._timeout_seconds = timeout_seconds
        self._pool_size = (pool_min_size, pool_max_size)
        self._sqlite: aiosqlite.Connection | None = None
        self._pg_pool: asyncpg.Pool | None = None
        # aiosqlite shares one connection, so statements are serialized.
        self._sqlite_lock = asyncio.Lock()

    @property
    def is_sqlite(self) -> bool:
        return self._dsn.driver == "sqlite"

    async def connect(self) -> None:
        if not self.is_sqlite:
            min_size, max_size = self._pool_size
            self._pg_pool = await asyncpg.create_pool(
                dsn=self._dsn.value, min_size=min_size, max_size=max_size, timeout=self._timeout_seconds
            )
            LOGGER.info("Connected to PostgreSQL (pool %s-%s)", min_size, max_size)
            return

        path = Path(self._dsn.value)
        path.parent.mkdir(parents=True, exist_ok=True)
        connection = await aiosqlite.connect(path, timeout=self._timeout_seconds)
        connection.row_factory = aiosqlite.Row
        await connection.executescript("PRAGMA journal_mode = WAL; PRAGMA foreign_keys = ON;")
        self._sqlite = connection
        LOGGER.info("Connected to SQLite at %s", path)

    async def close(self) -> None:
        if self._sqlite is not None:
            await self._sqlite.close()
            self._sqlite = None
        if self._pg_pool is not None:
            await self._pg_pool.close()
            self._pg_pool = None

    @asynccontextmanager
    async def _sqlite_cursor(self, query: str, params: Params, commit: bool = False) -> AsyncIterator[aiosqlite.Cursor]:
        if self._sqlite is None:
            raise RuntimeError("Database is not connected")
        async with self._sqlite_lock:
            cursor = await self._sqlite.execute(query, tuple(params or ()))
            try:
                yield cursor
                if commit:
                    await self._sqlite.commit()
            finally:
                await cursor.close()

    @asynccontextmanager
    async def _pg_connection(self) -> AsyncIterator[asyncpg.Connection]:
        if self._pg_pool is None:
            raise RuntimeError("Database is not connected")
        async with self._pg_pool.acquire() as connection:
            yield connection

    async def execute(self, query: str, params: Params = None) -> int:
        """Run a write statement and return the number of affected rows."""
        if self.is_sqlite:
            async with self._sqlite_cursor(query, params, commit=True) as cursor:
                return cursor.rowcount
        async with self._pg_connection() as connection:
            status = await connection.execute(qmark_to_dollar(query), *(params or ()))
        return _affected_rows(str(status))

    async def fetchone(self, query: str, params: Params = None) -> dict[str, Any] | None:
        if self.is_sqlite:
            async with self._sqlite_cursor(query, params) as cursor:
                row = await cursor.fetchone()
        else:
            async with self._pg_connection() as connection:
                row = await connection.fetchrow(qmark_to_dollar(query), *(params or ()))
        return dict(row) if row is not None else None

    async def fetchall(self, query: str, params: Params = None) -> list[dict[str, Any]]:
        if self.is_sqlite:
            async with self._sqlite_cursor(query, params) as cursor:
                rows = await cursor.fetchall()
        else:
            async with self._pg_connection() as connection:
                rows = await connection.fetch(qmark_to_dollar(query), *(params or ()))
        return [dict(row) for row in rows]

    async def executescript(self, sql_script: str) -> None:
        if not self.is_sqlite:
            async with self._pg_connection() as connection:
                await connection.execute(sql_script)
            return
        if self._sqlite is None:
            raise RuntimeError("Database is not connected")
        async with self._sqlite_lock:
            await self._sqlite.executescript(sql_script)
            await self._sqlite.commit()
