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

"""Shared fixtures: a fresh in-memory SQLite database per test."""

from __future__ import annotations

import pytest

from mango import Database
from mango.db import connect_sqlite


@pytest.fixture
async def executor():
    ex = await connect_sqlite(":memory:")
    yield ex
    await ex.close()


@pytest.fixture
async def db():
    database = await Database.connect_sqlite(":memory:")
    yield database
    await database.disconnect()
