# mango — fluent query builder and schema migrations for MySQL
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Connection-scope object: executor plus the tables known on it.

Usage::

    from mango import Database, DatabaseConfig

    db = await Database.connect(DatabaseConfig.from_env())
    users = await db.create_table("users", {
        "id": db.types().int_().auto_increment().primary_key(),
        "username": db.types().varchar(255).not_null().unique(),
    })
    await users.insert_one({"username": "ada"}).execute()
    await db.disconnect()

Tables that already exist are discovered on connect, so
``db.table("users")`` works without re-declaring columns.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Any

from mango.config import DatabaseConfig
from mango.db.connection import Executor, WriteResult, connect, connect_sqlite
from mango.db.operations import check_identifier, list_columns, list_tables, table_exists
from mango.db.transactions import transaction
from mango.errors import TableNotFoundError, ValidationError
from mango.query.table import Table
from mango.schema.types import ColumnType

logger = logging.getLogger(__name__)


class TableRegistry:
    """Tables known on one connection, keyed by lower-cased name."""

    def __init__(self) -> None:
        self._tables: dict[str, Table] = {}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables.values()))

    def __len__(self) -> int:
        return len(self._tables)

    def add(self, table: Table) -> Table:
        self._tables[table.name] = table
        return table

    def get(self, name: str) -> Table:
        table = self._tables.get(name.lower())
        if table is None:
            raise TableNotFoundError(name)
        return table

    def remove(self, name: str) -> Table | None:
        return self._tables.pop(name.lower(), None)

    def names(self) -> list[str]:
        return list(self._tables)

    def clear(self) -> None:
        self._tables.clear()


class Database:
    """A connected database and its table handles."""

    def __init__(self, executor: Executor) -> None:
        self.executor = executor
        self.registry = TableRegistry()

    @classmethod
    async def connect(cls, config: DatabaseConfig, *, discover: bool = True) -> Database:
        """Open the configured backend and (optionally) discover its tables."""
        db = cls(await connect(config))
        if discover:
            await db.discover_tables()
        return db

    @classmethod
    async def connect_sqlite(cls, path: str | Path = ":memory:", *, discover: bool = True) -> Database:
        db = cls(await connect_sqlite(path))
        if discover:
            await db.discover_tables()
        return db

    @property
    def dialect(self) -> str:
        return self.executor.dialect

    async def discover_tables(self) -> list[str]:
        """Register a handle for every table in the database.

        Returns the discovered table names.
        """
        names = await list_tables(self.executor)
        for name in names:
            await self.register_existing(name)
        logger.debug("Discovered %d table(s)", len(names))
        return names

    async def register_existing(self, name: str) -> Table:
        """Read the columns of an existing table and register a handle."""
        columns = await list_columns(self.executor, name)
        return self.registry.add(Table(self.executor, name, columns))

    async def disconnect(self) -> None:
        await self.executor.close()
        self.registry.clear()

    @staticmethod
    def types() -> ColumnType:
        """Start a new column definition."""
        return ColumnType()

    def table(self, name: str) -> Table:
        """Return the handle for *name*; raises :class:`TableNotFoundError`."""
        return self.registry.get(name)

    def has_table(self, name: str) -> bool:
        return name in self.registry

    @property
    def tables(self) -> list[Table]:
        return list(self.registry)

    async def create_table(self, name: str, fields: Mapping[str, ColumnType]) -> Table:
        """Create a table and register its handle."""
        name = check_identifier(name, "table name").lower()
        if not fields:
            raise ValidationError(f"No fields provided for table {name!r}")
        for column in fields:
            check_identifier(column, "column name")

        table = Table(self.executor, name, list(fields))
        columns = ",\n    ".join(
            f"{column} {ctype.render(self.dialect)}" for column, ctype in fields.items()
        )
        await self.executor.execute(f"CREATE TABLE {name} (\n    {columns}\n)")
        logger.info("Created table %s", name)
        return self.registry.add(table)

    async def drop_table(self, name: str) -> bool:
        """Drop *name* if it exists.  Returns whether anything was dropped.

        The catalogue decides: a handle left over from a table dropped
        elsewhere is discarded without issuing ``DROP TABLE``.
        """
        name = check_identifier(name, "table name").lower()
        if not await table_exists(self.executor, name):
            if self.registry.remove(name) is not None:
                logger.debug("Discarded stale handle for %s", name)
            return False
        await self.executor.execute(f"DROP TABLE {name}")
        self.registry.remove(name)
        logger.info("Dropped table %s", name)
        return True

    async def custom_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]] | WriteResult:
        """Run raw SQL with bound parameters."""
        return await self.executor.execute(sql, params)

    def transaction(self) -> AbstractAsyncContextManager[Any]:
        """``async with db.transaction(): ...`` — commit or roll back as a unit."""
        return transaction(self.executor)
