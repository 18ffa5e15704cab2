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

"""Column definition DSL.

A :class:`ColumnType` is built through chained calls and rendered to SQL
for a given dialect when the table is created or altered::

    db.types().int_().auto_increment().primary_key().not_null()
    db.types().varchar(255).not_null().unique()

MySQL and SQLite disagree on auto-increment syntax, so the column keeps
its parts separately and only assembles them in :meth:`ColumnType.render`.
"""

from __future__ import annotations

from mango.errors import ValidationError


class ColumnType:
    """Chainable description of one column's type and constraints."""

    def __init__(self) -> None:
        self.sql_type: str | None = None
        self.is_primary_key = False
        self.is_auto_increment = False
        self.is_not_null = False
        self.is_unique = False

    def __repr__(self) -> str:
        return f"ColumnType({self.render('mysql') if self.sql_type else 'untyped'!r})"

    def _set_type(self, sql_type: str) -> ColumnType:
        self.sql_type = sql_type
        return self

    @staticmethod
    def _length(length: int) -> int:
        if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
            raise ValidationError(f"Invalid column length: {length!r}")
        return length

    # --- Types ---

    def int_(self) -> ColumnType:
        return self._set_type("INT")

    def big_int(self) -> ColumnType:
        return self._set_type("BIGINT")

    def float_(self) -> ColumnType:
        return self._set_type("FLOAT")

    def char(self, length: int) -> ColumnType:
        """Fixed-length string."""
        return self._set_type(f"CHAR({self._length(length)})")

    def varchar(self, length: int) -> ColumnType:
        """Variable-length string up to *length* characters."""
        return self._set_type(f"VARCHAR({self._length(length)})")

    def text(self) -> ColumnType:
        return self._set_type("TEXT")

    def date(self) -> ColumnType:
        return self._set_type("DATE")

    def date_time(self) -> ColumnType:
        return self._set_type("DATETIME")

    def timestamp(self) -> ColumnType:
        return self._set_type("TIMESTAMP")

    def boolean(self) -> ColumnType:
        return self._set_type("BOOLEAN")

    def tiny_int(self, length: int) -> ColumnType:
        return self._set_type(f"TINYINT({self._length(length)})")

    # --- Constraints ---

    def auto_increment(self) -> ColumnType:
        self.is_auto_increment = True
        return self

    def primary_key(self) -> ColumnType:
        self.is_primary_key = True
        return self

    def not_null(self) -> ColumnType:
        self.is_not_null = True
        return self

    def unique(self) -> ColumnType:
        self.is_unique = True
        return self

    # --- Rendering ---

    def render(self, dialect: str = "mysql") -> str:
        """Return the column definition (without the column name)."""
        if self.sql_type is None:
            raise ValidationError("Column has no type")
        if dialect == "sqlite":
            return self._render_sqlite()
        return self._render_mysql()

    def _render_mysql(self) -> str:
        parts = [self.sql_type]
        if self.is_not_null:
            parts.append("NOT NULL")
        if self.is_unique:
            parts.append("UNIQUE")
        if self.is_auto_increment:
            parts.append("AUTO_INCREMENT")
        if self.is_primary_key:
            parts.append("PRIMARY KEY")
        return " ".join(parts)

    def _render_sqlite(self) -> str:
        # Only "INTEGER PRIMARY KEY" aliases the rowid and may autoincrement.
        integer = self.sql_type in ("INT", "BIGINT")
        if self.is_auto_increment and not (integer and self.is_primary_key):
            raise ValidationError("SQLite only supports AUTOINCREMENT on an integer primary key")

        parts = ["INTEGER" if integer and self.is_primary_key else self.sql_type]
        if self.is_primary_key:
            parts.append("PRIMARY KEY")
            if self.is_auto_increment:
                parts.append("AUTOINCREMENT")
        if self.is_not_null:
            parts.append("NOT NULL")
        if self.is_unique:
            parts.append("UNIQUE")
        return " ".join(parts)
