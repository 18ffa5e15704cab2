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

"""Pure-function query helpers.

All functions take an executor as their first argument.  SQL is passed in
directly — callers are responsible for using the executor's placeholder
(``?`` for SQLite, ``%s`` for MySQL).

The catalogue helpers (:func:`table_exists`, :func:`list_tables`,
:func:`list_columns`) hide the per-backend system tables.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from mango.errors import ValidationError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str, kind: str = "identifier") -> str:
    """Return *name* unchanged if it is a plain SQL identifier, else raise."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid {kind}: {name!r}")
    return name


def _is_sqlite(executor: Any) -> bool:
    return executor.dialect == "sqlite"


async def execute(executor: Any, sql: str, params: Sequence = ()) -> Any:
    """Execute a single statement and return the executor's result."""
    return await executor.execute(sql, params)


async def fetch_all(executor: Any, sql: str, params: Sequence = ()) -> list[dict[str, Any]]:
    """Execute and return all rows."""
    result = await executor.execute(sql, params)
    return result if isinstance(result, list) else []


async def fetch_one(executor: Any, sql: str, params: Sequence = ()) -> dict[str, Any] | None:
    """Execute and return the first row, or ``None``."""
    rows = await fetch_all(executor, sql, params)
    return rows[0] if rows else None


async def fetch_scalar(executor: Any, sql: str, params: Sequence = ()) -> Any:
    """Execute and return the first column of the first row, or ``None``."""
    row = await fetch_one(executor, sql, params)
    if not row:
        return None
    return next(iter(row.values()))


async def table_exists(executor: Any, name: str) -> bool:
    """Check whether a table exists in the connected database."""
    if _is_sqlite(executor):
        row = await fetch_one(
            executor,
            "SELECT 1 AS found FROM sqlite_master WHERE type='table' AND name=?",
            (name,),
        )
    else:
        row = await fetch_one(
            executor,
            "SELECT 1 AS found FROM information_schema.tables"
            " WHERE table_schema = DATABASE() AND table_name = %s",
            (name,),
        )
    return row is not None


async def list_tables(executor: Any) -> list[str]:
    """Return the names of all user tables."""
    if _is_sqlite(executor):
        rows = await fetch_all(
            executor,
            "SELECT name FROM sqlite_master"
            " WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
        )
    else:
        rows = await fetch_all(
            executor,
            "SELECT table_name AS name FROM information_schema.tables"
            " WHERE table_schema = DATABASE() ORDER BY table_name",
        )
    return [r["name"] for r in rows]


async def list_columns(executor: Any, table: str) -> list[str]:
    """Return the column names of *table* in declaration order."""
    if _is_sqlite(executor):
        # PRAGMA arguments cannot be bound, so the name must be a bare identifier.
        check_identifier(table, "table name")
        rows = await fetch_all(executor, f"PRAGMA table_info({table})")
    else:
        rows = await fetch_all(
            executor,
            "SELECT column_name AS name FROM information_schema.columns"
            " WHERE table_schema = DATABASE() AND table_name = %s"
            " ORDER BY ordinal_position",
            (table,),
        )
    return [r["name"] for r in rows]
