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

"""Thin async database layer — executors plus pure helper functions.

Supports SQLite (via aiosqlite) and MySQL (optional, via aiomysql).

Usage::

    from mango.db import connect_sqlite, fetch_all, execute, transaction

    executor = await connect_sqlite("~/.myapp/data.db")
    async with transaction(executor):
        await execute(executor, "INSERT INTO users (name) VALUES (?)", ("ada",))
    rows = await fetch_all(executor, "SELECT * FROM users")
"""

from mango.db.connection import (
    Executor,
    MySQLExecutor,
    SQLiteExecutor,
    WriteResult,
    connect,
    connect_mysql,
    connect_sqlite,
)
from mango.db.operations import (
    check_identifier,
    execute,
    fetch_all,
    fetch_one,
    fetch_scalar,
    list_columns,
    list_tables,
    table_exists,
)
from mango.db.transactions import transaction

__all__ = [
    "Executor",
    "SQLiteExecutor",
    "MySQLExecutor",
    "WriteResult",
    "connect",
    "connect_sqlite",
    "connect_mysql",
    "check_identifier",
    "execute",
    "fetch_one",
    "fetch_all",
    "fetch_scalar",
    "table_exists",
    "list_tables",
    "list_columns",
    "transaction",
]
