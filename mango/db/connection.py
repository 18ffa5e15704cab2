"""Database executors and connection factories.

An executor is the single object the rest of mango talks to.  It runs one
statement at a time::

    rows = await executor.execute("SELECT * FROM users WHERE id = ?", (1,))

and returns a list of ``dict`` rows for statements that produce a result
set, or a :class:`WriteResult` for everything else.  Driver errors are
propagated untouched.

SQLite uses ``aiosqlite``; MySQL uses ``aiomysql`` (optional dependency).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextvars import ContextVar
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from mango.config import DatabaseConfig
from mango.errors import ConnectivityError

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of a statement that returns no rows."""

    rowcount: int
    lastrowid: int | None = None


class Executor(Protocol):
    """What mango needs from a database backend."""

    dialect: str
    placeholder: str

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]] | WriteResult: ...

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SQLiteExecutor:
    """Executor over a single ``aiosqlite`` connection in autocommit mode."""

    dialect = "sqlite"
    placeholder = "?"

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]] | WriteResult:
        logger.debug("SQL: %s | %r", sql, params)
        async with self._conn.execute(sql, tuple(params)) as cur:
            if cur.description is not None:
                return [dict(row) for row in await cur.fetchall()]
            return WriteResult(rowcount=cur.rowcount, lastrowid=cur.lastrowid)

    async def begin(self) -> None:
        await self._conn.execute("BEGIN")

    async def commit(self) -> None:
        await self._conn.execute("COMMIT")

    async def rollback(self) -> None:
        await self._conn.execute("ROLLBACK")

    async def close(self) -> None:
        await self._conn.close()
        logger.debug("SQLite connection closed")


async def connect_sqlite(
    path: str | Path,
    *,
    foreign_keys: bool = True,
) -> SQLiteExecutor:
    """Open (or create) a SQLite database.

    Args:
        path: File path (``":memory:"`` for in-memory).
        foreign_keys: Enforce foreign key constraints.
    """
    path = str(Path(path).expanduser()) if str(path) != ":memory:" else ":memory:"

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = await aiosqlite.connect(path, isolation_level=None)
    except Exception as exc:
        raise ConnectivityError(f"Cannot open SQLite database {path}: {exc}") from exc
    conn.row_factory = aiosqlite.Row

    if foreign_keys:
        await conn.execute("PRAGMA foreign_keys=ON")

    logger.debug("SQLite connection opened: %s", path)
    return SQLiteExecutor(conn)


# ---------------------------------------------------------------------------
# MySQL
# ---------------------------------------------------------------------------


class MySQLExecutor:
    """Executor over an ``aiomysql`` pool.

    Statements run on any free pooled connection with autocommit on.
    Between :meth:`begin` and :meth:`commit`/:meth:`rollback` the current
    task is pinned to one connection so the transaction sees its own writes.
    """

    dialect = "mysql"
    placeholder = "%s"

    def __init__(self, pool: Any) -> None:
        self._pool = pool
        self._pinned: ContextVar[Any | None] = ContextVar("mango_mysql_pinned", default=None)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]] | WriteResult:
        import aiomysql

        logger.debug("SQL: %s | %r", sql, params)
        pinned = self._pinned.get()
        if pinned is not None:
            return await self._run(pinned, aiomysql.DictCursor, sql, params)
        async with self._pool.acquire() as conn:
            return await self._run(conn, aiomysql.DictCursor, sql, params)

    @staticmethod
    async def _run(conn: Any, cursor_cls: Any, sql: str, params: Sequence[Any]) -> list[dict[str, Any]] | WriteResult:
        async with conn.cursor(cursor_cls) as cur:
            await cur.execute(sql, tuple(params))
            if cur.description is not None:
                return list(await cur.fetchall())
            return WriteResult(rowcount=cur.rowcount, lastrowid=cur.lastrowid)

    async def begin(self) -> None:
        conn = await self._pool.acquire()
        self._pinned.set(conn)
        await conn.begin()

    async def commit(self) -> None:
        conn = self._pinned.get()
        try:
            await conn.commit()
        finally:
            self._release(conn)

    async def rollback(self) -> None:
        conn = self._pinned.get()
        try:
            await conn.rollback()
        finally:
            self._release(conn)

    def _release(self, conn: Any) -> None:
        self._pinned.set(None)
        self._pool.release(conn)

    async def close(self) -> None:
        self._pool.close()
        await self._pool.wait_closed()
        logger.debug("MySQL pool closed")


async def connect_mysql(config: DatabaseConfig) -> MySQLExecutor:
    """Open a MySQL connection pool via aiomysql."""
    try:
        import aiomysql
    except ImportError:
        raise ImportError(
            "aiomysql not installed. Install with: pip install mango-sql[mysql]"
        )

    try:
        pool = await aiomysql.create_pool(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            db=config.database,
            minsize=1,
            maxsize=config.connection_limit,
            connect_timeout=config.connect_timeout,
            charset=config.charset,
            autocommit=True,
        )
    except Exception as exc:
        raise ConnectivityError(
            f"Cannot connect to MySQL at {config.host}:{config.port}/{config.database}: {exc}"
        ) from exc

    logger.debug(
        "MySQL pool opened: %s:%s/%s", config.host, config.port, config.database
    )
    return MySQLExecutor(pool)


async def connect(config: DatabaseConfig) -> SQLiteExecutor | MySQLExecutor:
    """Open the backend named by ``config.backend``."""
    if config.backend == "sqlite":
        return await connect_sqlite(config.path)
    return await connect_mysql(config)
