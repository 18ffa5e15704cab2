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

"""Ordered, reversible migration runner.

Migrations are registered with a :class:`MigrationEngine` and applied in
ascending timestamp order.  Which ones have run is read from the ledger
table every time, never cached.

Usage::

    from mango import Database, Migration, MigrationEngine

    async def _create_users(db):
        await db.create_table("users", {
            "id": db.types().int_().auto_increment().primary_key(),
            "username": db.types().varchar(255).not_null(),
        })

    async def _drop_users(db):
        await db.drop_table("users")

    engine = MigrationEngine(db)
    engine.add(Migration("create_users", 1700000000000, _create_users, _drop_users))
    await engine.migrate_up_to_latest()

Failure handling:

- A failing ``up`` is never recorded, so the migration stays pending.
- A failing ``down`` keeps its ledger row, so it stays executed.
- Batches stop at the first failure; steps completed before it stay
  recorded.  Nothing is retried or compensated automatically.

Durability caveat: a migration's ``up``/``down`` and its ledger write are
two separate statements, not one transaction.  If the process dies between
them the schema has changed but the ledger has not, and the migration will
run again next time.  Write migrations that tolerate being re-run
(``IF NOT EXISTS`` / ``IF EXISTS``) where that matters.

No locking is done: two runners sharing one ledger can both pick the same
pending migration.  The unique ``name`` column then rejects the second
ledger insert, which surfaces as a :class:`~mango.errors.LedgerError`
after its ``up`` already ran.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from mango.config import DEFAULT_LEDGER_TABLE
from mango.database import Database
from mango.errors import (
    DuplicateMigrationError,
    MigrationNotFoundError,
    MigrationStepError,
)
from mango.migrations.ledger import Ledger
from mango.migrations.models import (
    Migration,
    MigrationProgress,
    MigrationState,
    MigrationStatus,
)

logger = logging.getLogger(__name__)


class MigrationEngine:
    """Registry of migrations plus the operations that apply them.

    Args:
        db: Connected database passed to every ``up``/``down``.
        migrations: Initial migrations to register.
        ledger_table: Name of the ledger table.
        on_progress: Called with a :class:`MigrationProgress` when each
            step starts, completes or fails.
    """

    def __init__(
        self,
        db: Database,
        migrations: Iterable[Migration] = (),
        *,
        ledger_table: str = DEFAULT_LEDGER_TABLE,
        on_progress: Callable[[MigrationProgress], None] | None = None,
    ) -> None:
        self.db = db
        self.ledger = Ledger(db, ledger_table)
        self.on_progress = on_progress
        self._registry: dict[str, Migration] = {}
        self.add_many(migrations)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add(self, migration: Migration) -> MigrationEngine:
        """Register a migration.  Names must be unique."""
        if migration.name in self._registry:
            raise DuplicateMigrationError(migration.name)
        self._registry[migration.name] = migration
        return self

    def add_many(self, migrations: Iterable[Migration]) -> MigrationEngine:
        for migration in migrations:
            self.add(migration)
        return self

    @property
    def migrations(self) -> list[Migration]:
        """Registered migrations, oldest timestamp first.

        Equal timestamps keep registration order.
        """
        return sorted(self._registry.values(), key=lambda m: m.timestamp)

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Make sure the ledger table exists."""
        await self.ledger.initialize()

    async def get_executed_names(self) -> list[str]:
        """Names of executed migrations in ascending timestamp order."""
        await self.initialize()
        return await self.ledger.executed_names()

    async def get_pending(self) -> list[Migration]:
        """Registered migrations that have not run, in execution order."""
        executed = set(await self.get_executed_names())
        return [m for m in self.migrations if m.name not in executed]

    async def status(self) -> MigrationStatus:
        """Report which registered migrations have run.  Read-only."""
        executed = await self.get_executed_names()
        executed_set = set(executed)
        return MigrationStatus(
            migrations=[
                MigrationState(m.name, m.timestamp, m.name in executed_set)
                for m in self.migrations
            ],
            orphans=[name for name in executed if name not in self._registry],
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _report(self, migration: Migration, direction: str, index: int, total: int,
                status: str, message: str | None = None) -> None:
        if self.on_progress is not None:
            self.on_progress(MigrationProgress(
                name=migration.name,
                direction=direction,
                index=index,
                total=total,
                status=status,
                message=message,
            ))

    async def _apply(self, migration: Migration, index: int = 1, total: int = 1) -> None:
        logger.info("Applying migration %d/%d: %s", index, total, migration.name)
        self._report(migration, "up", index, total, "started")
        try:
            await migration.up(self.db)
        except Exception as exc:
            logger.error("Migration failed: %s: %s", migration.name, exc)
            self._report(migration, "up", index, total, "failed", str(exc))
            raise MigrationStepError(migration.name, "up", exc) from exc

        try:
            await self.ledger.record(migration)
        except Exception as exc:
            logger.error("Migration %s ran but could not be recorded: %s", migration.name, exc)
            self._report(migration, "up", index, total, "failed", str(exc))
            raise
        logger.info("Migration completed: %s", migration.name)
        self._report(migration, "up", index, total, "completed")

    async def _revert(self, migration: Migration, index: int = 1, total: int = 1) -> None:
        logger.info("Rolling back migration %d/%d: %s", index, total, migration.name)
        self._report(migration, "down", index, total, "started")
        try:
            await migration.down(self.db)
        except Exception as exc:
            logger.error("Rollback failed: %s: %s", migration.name, exc)
            self._report(migration, "down", index, total, "failed", str(exc))
            raise MigrationStepError(migration.name, "down", exc) from exc

        try:
            await self.ledger.remove(migration)
        except Exception as exc:
            logger.error("Migration %s rolled back but is still recorded: %s", migration.name, exc)
            self._report(migration, "down", index, total, "failed", str(exc))
            raise
        logger.info("Rollback completed: %s", migration.name)
        self._report(migration, "down", index, total, "completed")

    def _registered(self, name: str) -> Migration:
        migration = self._registry.get(name)
        if migration is None:
            raise MigrationNotFoundError(name)
        return migration

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def migrate_up(self) -> Migration | None:
        """Apply the oldest pending migration.

        Returns it, or ``None`` when nothing is pending.
        """
        pending = await self.get_pending()
        if not pending:
            logger.info("No pending migrations to execute")
            return None

        migration = pending[0]
        await self._apply(migration)
        return migration

    async def migrate_up_to_latest(self) -> list[Migration]:
        """Apply every pending migration, oldest first.

        Each one is recorded as soon as it succeeds; the first failure stops
        the run.  Returns the migrations applied.
        """
        pending = await self.get_pending()
        if not pending:
            logger.info("No pending migrations to execute")
            return []

        logger.info("Running %d pending migration(s)", len(pending))
        applied: list[Migration] = []
        for index, migration in enumerate(pending, start=1):
            await self._apply(migration, index, len(pending))
            applied.append(migration)

        logger.info("Applied %d migration(s)", len(applied))
        return applied

    async def migrate_down(self) -> Migration | None:
        """Roll back the most recent executed migration (by timestamp).

        Returns it, or ``None`` when nothing has been executed.
        """
        executed = await self.get_executed_names()
        if not executed:
            logger.info("No migrations to roll back")
            return None

        migration = self._registered(executed[-1])
        await self._revert(migration)
        return migration

    async def migrate_down_to_oldest(self) -> list[Migration]:
        """Roll back every executed migration, newest first.

        Stops at the first failure.  Returns the migrations rolled back.
        """
        executed = await self.get_executed_names()
        if not executed:
            logger.info("No migrations to roll back")
            return []

        logger.info("Rolling back %d migration(s)", len(executed))
        reverted: list[Migration] = []
        total = len(executed)
        for index, name in enumerate(reversed(executed), start=1):
            migration = self._registered(name)
            await self._revert(migration, index, total)
            reverted.append(migration)

        logger.info("Rolled back %d migration(s)", len(reverted))
        return reverted
