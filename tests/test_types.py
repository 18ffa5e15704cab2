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

"""Tests for mango.schema — column type rendering."""

from __future__ import annotations

import pytest

from mango.errors import ValidationError
from mango.schema import ColumnType


def _col():
    return ColumnType()


class TestMySQLRendering:
    def test_auto_increment_primary_key(self):
        col = _col().int_().auto_increment().primary_key().not_null()
        assert col.render("mysql") == "INT NOT NULL AUTO_INCREMENT PRIMARY KEY"

    def test_varchar_not_null_unique(self):
        assert _col().varchar(255).not_null().unique().render("mysql") == "VARCHAR(255) NOT NULL UNIQUE"

    @pytest.mark.parametrize(
        "build, expected",
        [
            (lambda c: c.big_int(), "BIGINT"),
            (lambda c: c.float_(), "FLOAT"),
            (lambda c: c.char(2), "CHAR(2)"),
            (lambda c: c.text(), "TEXT"),
            (lambda c: c.date(), "DATE"),
            (lambda c: c.date_time(), "DATETIME"),
            (lambda c: c.timestamp(), "TIMESTAMP"),
            (lambda c: c.boolean(), "BOOLEAN"),
            (lambda c: c.tiny_int(1), "TINYINT(1)"),
        ],
    )
    def test_plain_types(self, build, expected):
        assert build(_col()).render() == expected


class TestSQLiteRendering:
    def test_integer_primary_key_autoincrement(self):
        col = _col().int_().primary_key().not_null().auto_increment()
        assert col.render("sqlite") == "INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL"

    def test_big_int_primary_key_becomes_integer(self):
        assert _col().big_int().primary_key().render("sqlite") == "INTEGER PRIMARY KEY"

    def test_non_key_int_keeps_type(self):
        assert _col().int_().not_null().render("sqlite") == "INT NOT NULL"

    def test_auto_increment_without_primary_key_rejected(self):
        with pytest.raises(ValidationError):
            _col().int_().auto_increment().render("sqlite")


class TestValidation:
    def test_untyped_column_rejected(self):
        with pytest.raises(ValidationError):
            _col().not_null().render()

    @pytest.mark.parametrize("length", [0, -5, "10", True])
    def test_bad_length_rejected(self, length):
        with pytest.raises(ValidationError):
            _col().varchar(length)
