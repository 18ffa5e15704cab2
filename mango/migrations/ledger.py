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

"""Durable record of executed migrations.

One row per applied (and not rolled back) migration lives in the ledger
table, ``mango_migrations`` by default::

    id           integer primary key, auto-assigned
    name         unique, the migration's name
    timestamp    copied from the migration
    executed_at  epoch milliseconds when it was recorded

The database, not the in-memory registry, is the source of truth: every
check for the table's existence goes to the catalogue, so a ledger dropped
behind our back is simply re-created.
"""

from __future__ import annotations

import logging
import time

from mango.config import DEFAULT_LEDGER_TABLE
from mango.database import Database
from mango.db.operations import check_identifier, table_exists
from mango.errors import LedgerError
from mango.migrations.models import LedgerRow, Migration
from mango.query.table import Table
from mango.schema.types import ColumnType

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ledger_columns() -> dict[str, ColumnType]:
    return {
        "id": ColumnType().int_().primary_key().not_null().auto_increment(),
        # VARCHAR rather than TEXT: MySQL cannot index TEXT without a prefix length.
        "name": ColumnType().varchar(255).not_null().unique(),
        "timestamp": ColumnType().big_int().not_null(),
        "executed_at": ColumnType().big_int().not_null(),
    }


class Ledger:
    """Access to the ledger table through a :class:`Table` handle."""

    def __init__(self, db: Database, table_name: str = DEFAULT_LEDGER_TABLE) -> None:
        self.db = db
        self.table_name = check_identifier(table_name, "ledger table name").lower()

    async def initialize(self) -> Table:
        """Create the ledger table if it does not exist.  Safe to repeat.

        A create that fails because another runner created the table in the
        meantime counts as success.
        """
        executor = self.db.executor
        if await table_exists(executor, self.table_name):
            if not self.db.has_table(self.table_name):
                return await self.db.register_existing(self.table_name)
            return self.db.table(self.table_name)

        # A handle may survive from before the table was dropped externally.
        self.db.registry.remove(self.table_name)
        try:
            table = await self.db.create_table(self.table_name, _ledger_columns())
        except Exception as exc:
            if await table_exists(executor, self.table_name):
                logger.debug("Ledger table %s was created concurrently", self.table_name)
                return await self.db.register_existing(self.table_name)
            raise LedgerError(
                f"Cannot create ledger table {self.table_name}: {exc}",
                phase="initialize",
            ) from exc

        logger.info("Created ledger table %s", self.table_name)
        return table

    async def _table(self) -> Table:
        if self.db.has_table(self.table_name):
            return self.db.table(self.table_name)
        return await self.initialize()

    async def rows(self) -> list[LedgerRow]:
        """All ledger rows, oldest timestamp first (ties by id)."""
        table = await self._table()
        result = await table.select_all().order_by("timestamp").sort(1).execute()
        rows = [LedgerRow.from_row(r) for r in result]
        return sorted(rows, key=lambda r: (r.timestamp, r.id))

    async def executed_names(self) -> list[str]:
        return [row.name for row in await self.rows()]

    async def record(self, migration: Migration) -> None:
        """Insert the ledger row for a migration whose ``up`` succeeded."""
        table = await self._table()
        try:
            await table.insert_one({
                "name": migration.name,
                "timestamp": migration.timestamp,
                "executed_at": _now_ms(),
            }).execute()
        except Exception as exc:
            raise LedgerError(
                f"Failed to record migration {migration.name!r}: {exc}",
                phase="record",
                migration=migration.name,
            ) from exc
        logger.debug("Recorded %s in %s", migration.name, self.table_name)

    async def remove(self, migration: Migration) -> None:
        """Delete the ledger row for a migration whose ``down`` succeeded."""
        table = await self._table()
        try:
            await table.delete().where("name", "=", migration.name).execute()
        except Exception as exc:
            raise LedgerError(
                f"Failed to remove migration {migration.name!r}: {exc}",
                phase="remove",
                migration=migration.name,
            ) from exc
        logger.debug("Removed %s from %s", migration.name, self.table_name)
