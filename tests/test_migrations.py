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

"""Tests for mango.migrations — ledger and migration engine."""

from __future__ import annotations

import pytest

import mango.migrations.ledger as ledger_module
from mango import (
    DuplicateMigrationError,
    LedgerError,
    Migration,
    MigrationEngine,
    MigrationNotFoundError,
    MigrationStepError,
    ValidationError,
)
from mango.db import fetch_scalar, table_exists
from mango.migrations import Ledger, MigrationStatus
from mango.migrations.models import MigrationState


def _tracked(name, timestamp, log, fail_up=False, fail_down=False):
    async def up(db):
        if fail_up:
            raise RuntimeError(f"{name} up exploded")
        log.append(("up", name))

    async def down(db):
        if fail_down:
            raise RuntimeError(f"{name} down exploded")
        log.append(("down", name))

    return Migration(name, timestamp, up, down)


async def _create_users(db):
    await db.create_table("users", {
        "id": db.types().int_().auto_increment().primary_key(),
        "username": db.types().varchar(255).not_null().unique(),
        "password": db.types().varchar(255).not_null(),
    })


async def _drop_users(db):
    await db.drop_table("users")


CREATE_USERS = Migration("create_users", 1000, _create_users, _drop_users)


class TestMigrationRecord:
    @pytest.mark.parametrize("name", ["", "has space", "semi;colon", None])
    def test_invalid_name(self, name):
        with pytest.raises(ValidationError):
            Migration(name, 1, _create_users, _drop_users)

    @pytest.mark.parametrize("timestamp", ["1000", 1.5, True, None])
    def test_invalid_timestamp(self, timestamp):
        with pytest.raises(ValidationError):
            Migration("m", timestamp, _create_users, _drop_users)

    def test_requires_callables(self):
        with pytest.raises(ValidationError):
            Migration("m", 1, "up", _drop_users)


class TestRegistry:
    async def test_duplicate_name_rejected(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        with pytest.raises(DuplicateMigrationError):
            engine.add(Migration("create_users", 2000, _create_users, _drop_users))
        assert len(engine.migrations) == 1

    async def test_sorted_by_timestamp_with_stable_ties(self, db):
        log = []
        engine = MigrationEngine(db)
        engine.add(_tracked("c", 300, log)).add(_tracked("b2", 200, log)).add(_tracked("b1", 200, log))
        engine.add(_tracked("a", 100, log))
        assert [m.name for m in engine.migrations] == ["a", "b2", "b1", "c"]

    async def test_add_returns_engine(self, db):
        engine = MigrationEngine(db)
        assert engine.add(CREATE_USERS) is engine


class TestLedger:
    async def test_initialize_creates_table_once(self, db):
        ledger = Ledger(db)
        await ledger.initialize()
        await ledger.initialize()
        assert await table_exists(db.executor, "mango_migrations")
        assert db.table("mango_migrations").fields == ["id", "name", "timestamp", "executed_at"]

    async def test_record_and_remove(self, db):
        ledger = Ledger(db)
        await ledger.initialize()
        await ledger.record(CREATE_USERS)
        rows = await ledger.rows()
        assert [(r.name, r.timestamp) for r in rows] == [("create_users", 1000)]
        assert rows[0].executed_at > 0

        await ledger.remove(CREATE_USERS)
        assert await ledger.executed_names() == []

    async def test_rows_ordered_by_timestamp(self, db):
        log = []
        ledger = Ledger(db)
        await ledger.initialize()
        await ledger.record(_tracked("late", 50, log))
        await ledger.record(_tracked("early", 10, log))
        assert await ledger.executed_names() == ["early", "late"]

    async def test_concurrent_creation_counts_as_success(self, db, monkeypatch):
        await Ledger(db).initialize()
        db.registry.remove("mango_migrations")

        real = ledger_module.table_exists
        answers = iter([False])

        async def stale_then_real(executor, name):
            try:
                return next(answers)
            except StopIteration:
                return await real(executor, name)

        monkeypatch.setattr(ledger_module, "table_exists", stale_then_real)
        table = await Ledger(db).initialize()
        assert table.name == "mango_migrations"
        assert db.has_table("mango_migrations")

    async def test_creation_failure_raises_ledger_error(self, db, monkeypatch):
        async def refuse(name, fields):
            raise RuntimeError("permission denied")

        monkeypatch.setattr(db, "create_table", refuse)
        with pytest.raises(LedgerError) as info:
            await Ledger(db).initialize()
        assert info.value.phase == "initialize"
        assert isinstance(info.value.__cause__, RuntimeError)

    async def test_custom_table_name(self, db):
        engine = MigrationEngine(db, [CREATE_USERS], ledger_table="schema_log")
        await engine.migrate_up()
        assert await table_exists(db.executor, "schema_log")
        assert not await table_exists(db.executor, "mango_migrations")

    async def test_invalid_table_name(self, db):
        with pytest.raises(ValidationError):
            Ledger(db, "bad name")


class TestMigrateUp:
    async def test_apply_single_migration(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        applied = await engine.migrate_up()

        assert applied is CREATE_USERS
        assert await table_exists(db.executor, "users")
        count = await fetch_scalar(
            db.executor, "SELECT COUNT(*) FROM mango_migrations WHERE name = ?", ("create_users",)
        )
        assert count == 1
        status = await engine.status()
        assert (status.executed_count, status.pending_count) == (1, 0)

    async def test_nothing_pending(self, db):
        engine = MigrationEngine(db)
        assert await engine.migrate_up() is None
        assert await engine.migrate_up_to_latest() == []

    async def test_up_applies_oldest_first(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("second", 2, log), _tracked("first", 1, log)])
        await engine.migrate_up()
        assert log == [("up", "first")]
        assert [m.name for m in await engine.get_pending()] == ["second"]

    async def test_latest_applies_all_in_order(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked(n, ts, log) for n, ts in [("c", 3), ("a", 1), ("b", 2)]])
        applied = await engine.migrate_up_to_latest()
        assert [m.name for m in applied] == ["a", "b", "c"]
        assert log == [("up", "a"), ("up", "b"), ("up", "c")]
        assert await engine.get_executed_names() == ["a", "b", "c"]

    async def test_reading_executed_names_changes_nothing(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("a", 1, log), _tracked("b", 2, log)])
        await engine.migrate_up()

        first = await engine.get_executed_names()
        second = await engine.get_executed_names()
        assert first == second == ["a"]
        assert log == [("up", "a")]

    async def test_latest_is_idempotent(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("a", 1, log)])
        await engine.migrate_up_to_latest()
        await engine.migrate_up_to_latest()
        assert log == [("up", "a")]

    async def test_failed_up_is_not_recorded(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("broken", 1, log, fail_up=True)])
        with pytest.raises(MigrationStepError) as info:
            await engine.migrate_up()
        assert info.value.migration == "broken"
        assert info.value.phase == "up"
        assert isinstance(info.value.__cause__, RuntimeError)
        assert await engine.get_executed_names() == []

    async def test_batch_stops_at_first_failure(self, db):
        log = []
        engine = MigrationEngine(db, [
            _tracked("a", 1, log),
            _tracked("b", 2, log, fail_up=True),
            _tracked("c", 3, log),
        ])
        with pytest.raises(MigrationStepError):
            await engine.migrate_up_to_latest()
        assert log == [("up", "a")]
        assert await engine.get_executed_names() == ["a"]
        assert [m.name for m in await engine.get_pending()] == ["b", "c"]

    async def test_ledger_write_failure_after_successful_up(self, db):
        async def drop_ledger(database):
            await database.custom_query("DROP TABLE mango_migrations")

        engine = MigrationEngine(db, [Migration("sabotage", 1, drop_ledger, _drop_users)])
        await engine.initialize()
        with pytest.raises(LedgerError) as info:
            await engine.migrate_up()
        assert info.value.phase == "record"
        assert info.value.migration == "sabotage"

    async def test_rerun_after_partial_failure(self, db):
        """A step that ran but was never recorded runs again."""
        calls = []

        async def up(database):
            calls.append("up")
            await database.custom_query("CREATE TABLE IF NOT EXISTS audit (id INTEGER)")

        engine = MigrationEngine(db, [Migration("audit", 1, up, _drop_users)])
        await engine.migrate_up()
        await db.custom_query("DELETE FROM mango_migrations")
        await engine.migrate_up()
        assert calls == ["up", "up"]
        assert await engine.get_executed_names() == ["audit"]


class TestMigrateDown:
    async def test_roll_back_create_users(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        await engine.migrate_up()

        reverted = await engine.migrate_down()
        assert reverted is CREATE_USERS
        assert not await table_exists(db.executor, "users")
        status = await engine.status()
        assert (status.executed_count, status.pending_count) == (0, 1)

    async def test_roll_back_after_table_dropped_elsewhere(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        await engine.migrate_up()
        await db.custom_query("DROP TABLE users")

        assert await engine.migrate_down() is CREATE_USERS
        assert await engine.get_executed_names() == []

    async def test_nothing_to_roll_back(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        assert await engine.migrate_down() is None
        assert await engine.migrate_down_to_oldest() == []

    async def test_down_reverts_latest_timestamp(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("a", 1, log), _tracked("b", 2, log)])
        await engine.migrate_up_to_latest()
        log.clear()
        await engine.migrate_down()
        assert log == [("down", "b")]
        assert await engine.get_executed_names() == ["a"]

    async def test_down_to_oldest_reverts_newest_first(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked(n, ts, log) for n, ts in [("a", 1), ("b", 2), ("c", 3)]])
        await engine.migrate_up_to_latest()
        log.clear()
        reverted = await engine.migrate_down_to_oldest()
        assert [m.name for m in reverted] == ["c", "b", "a"]
        assert log == [("down", "c"), ("down", "b"), ("down", "a")]
        assert await engine.get_executed_names() == []

    async def test_failed_down_stays_executed(self, db):
        log = []
        engine = MigrationEngine(db, [
            _tracked("a", 1, log),
            _tracked("b", 2, log, fail_down=True),
            _tracked("c", 3, log),
        ])
        await engine.migrate_up_to_latest()
        with pytest.raises(MigrationStepError) as info:
            await engine.migrate_down_to_oldest()
        assert info.value.phase == "down"
        assert info.value.migration == "b"
        assert await engine.get_executed_names() == ["a", "b"]

    async def test_unregistered_executed_migration(self, db):
        log = []
        first = MigrationEngine(db, [_tracked("gone", 1, log)])
        await first.migrate_up()

        second = MigrationEngine(db, [_tracked("kept", 2, log)])
        with pytest.raises(MigrationNotFoundError):
            await second.migrate_down_to_oldest()


class TestStatus:
    async def test_empty(self, db):
        status = await MigrationEngine(db).status()
        assert status.state == "empty"
        assert status.total == 0

    async def test_pending_then_up_to_date(self, db):
        log = []
        engine = MigrationEngine(db, [_tracked("a", 1, log), _tracked("b", 2, log)])
        status = await engine.status()
        assert status.state == "pending"
        assert status.pending == ["a", "b"]
        assert log == []

        await engine.migrate_up_to_latest()
        status = await engine.status()
        assert status.state == "up_to_date"
        assert status.to_dict() == {
            "state": "up_to_date",
            "total": 2,
            "executed": 2,
            "pending": 0,
            "orphans": [],
            "migrations": [
                {"name": "a", "timestamp": 1, "executed": True},
                {"name": "b", "timestamp": 2, "executed": True},
            ],
        }

    async def test_orphans_reported(self, db):
        log = []
        await MigrationEngine(db, [_tracked("old", 1, log)]).migrate_up()
        status = await MigrationEngine(db, [_tracked("new", 2, log)]).status()
        assert status.orphans == ["old"]
        assert status.pending == ["new"]

    async def test_ledger_recreated_after_external_drop(self, db):
        engine = MigrationEngine(db, [CREATE_USERS])
        await engine.migrate_up()
        await db.custom_query("DROP TABLE mango_migrations")

        status = await engine.status()
        assert status.executed_count == 0
        assert await table_exists(db.executor, "mango_migrations")

    def test_counts(self):
        status = MigrationStatus([
            MigrationState("a", 1, True),
            MigrationState("b", 2, False),
        ])
        assert (status.total, status.executed_count, status.pending_count) == (2, 1, 1)


class TestProgress:
    async def test_events_for_batch(self, db):
        events = []
        log = []
        engine = MigrationEngine(
            db,
            [_tracked("a", 1, log), _tracked("b", 2, log)],
            on_progress=events.append,
        )
        await engine.migrate_up_to_latest()
        assert [(e.name, e.index, e.total, e.status) for e in events] == [
            ("a", 1, 2, "started"),
            ("a", 1, 2, "completed"),
            ("b", 2, 2, "started"),
            ("b", 2, 2, "completed"),
        ]
        assert {e.direction for e in events} == {"up"}

    async def test_failure_event_carries_message(self, db):
        events = []
        engine = MigrationEngine(db, [_tracked("x", 1, [], fail_up=True)], on_progress=events.append)
        with pytest.raises(MigrationStepError):
            await engine.migrate_up()
        assert events[-1].status == "failed"
        assert "x up exploded" in events[-1].message
