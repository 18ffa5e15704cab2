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

"""Schema-validated query builder bound to one table.

A :class:`Table` knows its column names and rejects any builder call that
references a column it does not have, before anything reaches the
database.  Builder methods return the table itself so calls chain::

    rows = await users.select_all().where("age", ">=", 18).order_by("name").execute()

Each table owns exactly one pending statement.  Starting a new statement
(``select_*``, ``insert_*``, ``update``, ``delete``, ``truncate``) discards
whatever was pending, and :meth:`Table.execute` clears the statement and its
parameters whether or not it succeeds.  Values are always bound through
placeholders, including falsy ones (``0``, ``False``, ``""``).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from mango.db.connection import Executor, WriteResult
from mango.db.operations import check_identifier
from mango.errors import InvalidOperatorError, UnknownColumnError, ValidationError
from mango.schema.types import ColumnType

logger = logging.getLogger(__name__)

VALID_OPERATORS = frozenset({
    "=", "!=", "<>", ">", "<", ">=", "<=",
    "LIKE", "NOT LIKE", "IN", "NOT IN", "IS", "IS NOT",
})
JOIN_TYPES = ("INNER", "LEFT", "RIGHT", "FULL")
_JOIN_OPERATORS = frozenset({"=", "!=", "<>", ">", "<", ">=", "<="})
_QUALIFIED = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def _normalize_operator(operator: str) -> str:
    if not isinstance(operator, str):
        raise InvalidOperatorError(repr(operator))
    op = " ".join(operator.upper().split())
    if op not in VALID_OPERATORS:
        raise InvalidOperatorError(operator)
    return op


class Table:
    """Query builder for a single table.

    Args:
        executor: Backend that runs the built statements.
        name: Table name (lower-cased).
        fields: Known column names, in declaration order.
    """

    def __init__(self, executor: Executor, name: str, fields: Sequence[str]) -> None:
        if not fields or (len(fields) == 1 and not fields[0]):
            raise ValidationError(f"No fields provided for table {name!r}")
        self._executor = executor
        self.name = check_identifier(name, "table name").lower()
        self._fields = [check_identifier(f, "column name") for f in fields]
        self._reset()

    def __repr__(self) -> str:
        return f"Table({self.name!r}, fields={self._fields!r})"

    @property
    def fields(self) -> list[str]:
        """Known column names (a copy)."""
        return list(self._fields)

    # ------------------------------------------------------------------
    # Statement buffer
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        # Pending DDL: (sql, columns added, columns removed)
        self._ddl: list[tuple[str, list[str], list[str]]] = []
        self._sql: list[str] = []
        self._params: list[Any] = []
        self._has_where = False

    def _start(self, sql: str) -> Table:
        self._reset()
        self._sql.append(sql)
        return self

    @property
    def _ph(self) -> str:
        return self._executor.placeholder

    def _placeholders(self, count: int) -> str:
        return ", ".join([self._ph] * count)

    def _check_field(self, field: str) -> str:
        if field not in self._fields:
            raise UnknownColumnError(self.name, field)
        return field

    def build(self) -> tuple[str, list[Any]]:
        """Return the pending SQL and its parameters without executing."""
        statements = [ddl for ddl, _, _ in self._ddl]
        if self._sql:
            statements.append(" ".join(self._sql))
        return "; ".join(statements), list(self._params)

    def reset(self) -> Table:
        """Discard the pending statement."""
        self._reset()
        return self

    # ------------------------------------------------------------------
    # Schema changes
    # ------------------------------------------------------------------

    def add_columns(self, fields: Mapping[str, ColumnType]) -> Table:
        """Queue ``ALTER TABLE ... ADD COLUMN`` for each entry.

        The known-column list is updated once :meth:`execute` succeeds.
        """
        if not fields:
            return self
        pending = {c for _, added, _ in self._ddl for c in added}
        clauses = []
        for name, column in fields.items():
            check_identifier(name, "column name")
            if name in self._fields or name in pending:
                raise ValidationError(f"Column {name!r} already exists in table {self.name!r}")
            clauses.append((name, f"ADD COLUMN {name} {column.render(self._executor.dialect)}"))

        if self._executor.dialect == "sqlite":
            # SQLite accepts a single column change per ALTER TABLE.
            for name, clause in clauses:
                self._ddl.append((f"ALTER TABLE {self.name} {clause}", [name], []))
        else:
            self._ddl.append((
                f"ALTER TABLE {self.name} " + ", ".join(c for _, c in clauses),
                [n for n, _ in clauses],
                [],
            ))
        return self

    def remove_columns(self, fields: Sequence[str]) -> Table:
        """Queue ``ALTER TABLE ... DROP COLUMN`` for each name."""
        if not fields:
            return self
        for field in fields:
            self._check_field(field)

        if self._executor.dialect == "sqlite":
            for field in fields:
                self._ddl.append((f"ALTER TABLE {self.name} DROP COLUMN {field}", [], [field]))
        else:
            self._ddl.append((
                f"ALTER TABLE {self.name} " + ", ".join(f"DROP COLUMN {f}" for f in fields),
                [],
                list(fields),
            ))
        return self

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select_all(self) -> Table:
        return self._start(f"SELECT * FROM {self.name}")

    def select_columns(self, columns: Sequence[str]) -> Table:
        if not columns:
            raise ValidationError("select_columns requires at least one column")
        for column in columns:
            self._check_field(column)
        return self._start(f"SELECT {', '.join(columns)} FROM {self.name}")

    def select_distinct_columns(self, columns: Sequence[str]) -> Table:
        if not columns:
            raise ValidationError("select_distinct_columns requires at least one column")
        for column in columns:
            self._check_field(column)
        return self._start(f"SELECT DISTINCT {', '.join(columns)} FROM {self.name}")

    def join(self, kind: str, table: str, on: tuple[str, str, str]) -> Table:
        """Add ``<kind> JOIN <table> ON <left> <op> <right>``.

        *on* compares two (optionally table-qualified) column references.
        """
        kind = kind.upper() if isinstance(kind, str) else kind
        if kind not in JOIN_TYPES:
            raise ValidationError(f"Invalid join type: {kind!r}")
        check_identifier(table, "table name")
        left, operator, right = on
        for ref in (left, right):
            if not isinstance(ref, str) or not _QUALIFIED.match(ref):
                raise ValidationError(f"Invalid column reference: {ref!r}")
        if operator not in _JOIN_OPERATORS:
            raise InvalidOperatorError(operator)
        self._sql.append(f"{kind} JOIN {table.lower()} ON {left} {operator} {right}")
        return self

    def order_by(self, column: str) -> Table:
        self._check_field(column)
        self._sql.append(f"ORDER BY {column}")
        return self

    def sort(self, direction: int = 1) -> Table:
        """Ascending for a positive *direction*, descending otherwise."""
        self._sql.append("ASC" if direction > 0 else "DESC")
        return self

    def limit(self, length: int) -> Table:
        if length <= 0:
            return self
        self._sql.append(f"LIMIT {int(length)}")
        return self

    def offset(self, length: int) -> Table:
        if length <= 0:
            return self
        self._sql.append(f"OFFSET {int(length)}")
        return self

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_one(self, row: Mapping[str, Any]) -> Table:
        """Insert a single row given as ``{column: value}``."""
        if not row:
            raise ValidationError("insert_one requires at least one column")
        for field in row:
            self._check_field(field)
        self._start(
            f"INSERT INTO {self.name} ({', '.join(row)})"
            f" VALUES ({self._placeholders(len(row))})"
        )
        self._params = list(row.values())
        return self

    def insert_many(self, fields: Sequence[str], rows: Sequence[Sequence[Any]]) -> Table:
        """Insert several rows in one statement.

        Every row must supply exactly one value per entry in *fields*.
        """
        if not fields:
            raise ValidationError("insert_many requires at least one column")
        if not rows:
            raise ValidationError("insert_many requires at least one row")
        for field in fields:
            self._check_field(field)
        for i, row in enumerate(rows):
            if len(row) != len(fields):
                raise ValidationError(
                    f"Row {i} has {len(row)} values, expected {len(fields)}"
                )

        values = ", ".join(f"({self._placeholders(len(fields))})" for _ in rows)
        self._start(f"INSERT INTO {self.name} ({', '.join(fields)}) VALUES {values}")
        self._params = [value for row in rows for value in row]
        return self

    def update(self, data: Mapping[str, Any]) -> Table:
        if not data:
            raise ValidationError("update requires at least one column")
        for field in data:
            self._check_field(field)
        assignments = ", ".join(f"{field} = {self._ph}" for field in data)
        self._start(f"UPDATE {self.name} SET {assignments}")
        self._params = list(data.values())
        return self

    def delete(self) -> Table:
        return self._start(f"DELETE FROM {self.name}")

    def truncate(self) -> Table:
        if self._executor.dialect == "sqlite":
            return self._start(f"DELETE FROM {self.name}")
        return self._start(f"TRUNCATE TABLE {self.name}")

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _condition(self, keyword: str, field: str, operator: str, value: Any) -> Table:
        self._check_field(field)
        op = _normalize_operator(operator)

        if op in ("IN", "NOT IN"):
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)) or not value:
                raise ValidationError(f"{op} requires a non-empty list of values")
            values = list(value)
            clause = f"{field} {op} ({self._placeholders(len(values))})"
            self._params.extend(values)
        elif op in ("IS", "IS NOT") and value is None:
            clause = f"{field} {op} NULL"
        elif op in ("IS", "IS NOT") and isinstance(value, bool):
            # MySQL only accepts keywords after IS
            clause = f"{field} {op} {'TRUE' if value else 'FALSE'}"
        else:
            clause = f"{field} {op} {self._ph}"
            self._params.append(value)

        self._sql.append(f"{keyword} {clause}")
        self._has_where = True
        return self

    def where(self, field: str, operator: str, value: Any) -> Table:
        """Filter on ``field <operator> value``; a repeated call ANDs."""
        return self._condition("AND" if self._has_where else "WHERE", field, operator, value)

    def and_(self, field: str, operator: str, value: Any) -> Table:
        if not self._has_where:
            raise ValidationError("and_() requires a preceding where()")
        return self._condition("AND", field, operator, value)

    def or_(self, field: str, operator: str, value: Any) -> Table:
        if not self._has_where:
            raise ValidationError("or_() requires a preceding where()")
        return self._condition("OR", field, operator, value)

    def where_in(self, field: str, values: Sequence[Any]) -> Table:
        return self.where(field, "IN", values)

    def where_not_in(self, field: str, values: Sequence[Any]) -> Table:
        return self.where(field, "NOT IN", values)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self) -> list[dict[str, Any]] | WriteResult:
        """Run the pending statement(s) and clear the buffer.

        Returns the rows of a read, or a :class:`WriteResult` otherwise.
        """
        ddl = self._ddl
        sql = " ".join(self._sql)
        params = self._params
        self._reset()

        if not ddl and not sql:
            raise ValidationError(f"No statement built for table {self.name!r}")

        result: list[dict[str, Any]] | WriteResult | None = None
        for statement, added, removed in ddl:
            result = await self._executor.execute(statement)
            self._fields = [f for f in self._fields if f not in removed] + added
            logger.debug("Table %s columns now %s", self.name, self._fields)
        if sql:
            result = await self._executor.execute(sql, params)
        return result

    async def custom_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]] | WriteResult:
        """Run raw SQL through this table's executor."""
        return await self._executor.execute(sql, params)
