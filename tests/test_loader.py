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

"""Tests for migration file generation and loading."""

from __future__ import annotations

import pytest

from mango import DuplicateMigrationError, MigrationEngine, MigrationLoadError, ValidationError
from mango.db import table_exists
from mango.migrations import generate_migration_file, load_migrations, render_migration

_CREATE_USERS = '''
from mango import Migration


async def up(db):
    await db.create_table("users", {
        "id": db.types().int_().auto_increment().primary_key(),
        "username": db.types().varchar(255).not_null(),
    })


async def down(db):
    await db.drop_table("users")


migration = Migration(name="create_users", timestamp=1000, up=up, down=down)
'''


def _write(directory, filename, source):
    path = directory / filename
    path.write_text(source, encoding="utf-8")
    return path


class TestGenerate:
    def test_creates_file_named_by_timestamp(self, tmp_path):
        path = generate_migration_file("create_users", tmp_path / "migrations", timestamp=1234)
        assert path.name == "1234_create_users.py"
        source = path.read_text(encoding="utf-8")
        assert 'name="create_users"' in source
        assert "timestamp=1234" in source

    def test_default_timestamp_is_epoch_millis(self, tmp_path):
        path = generate_migration_file("add_index", tmp_path)
        stamp = int(path.name.split("_", 1)[0])
        assert stamp > 1_600_000_000_000

    @pytest.mark.parametrize("name", ["", "1starts_with_digit", "has-dash", "a b"])
    def test_invalid_name(self, tmp_path, name):
        with pytest.raises(ValidationError):
            generate_migration_file(name, tmp_path)

    def test_refuses_to_overwrite(self, tmp_path):
        generate_migration_file("m", tmp_path, timestamp=1)
        with pytest.raises(ValidationError):
            generate_migration_file("m", tmp_path, timestamp=1)

    def test_custom_template(self, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        _write(templates, "migration.py.j2", "# custom {{ name }} {{ timestamp }}\n")
        path = generate_migration_file("m", tmp_path / "out", timestamp=7, template_dir=templates)
        assert path.read_text(encoding="utf-8") == "# custom m 7\n"

    def test_generated_file_loads(self, tmp_path):
        generate_migration_file("noop", tmp_path, timestamp=42)
        [migration] = load_migrations(tmp_path)
        assert (migration.name, migration.timestamp) == ("noop", 42)


class TestLoad:
    def test_missing_directory(self, tmp_path):
        assert load_migrations(tmp_path / "nope") == []

    def test_skips_private_files(self, tmp_path):
        _write(tmp_path, "_helpers.py", "raise RuntimeError('should not import')\n")
        _write(tmp_path, "1000_create_users.py", _CREATE_USERS)
        assert [m.name for m in load_migrations(tmp_path)] == ["create_users"]

    def test_file_without_migration_is_ignored(self, tmp_path):
        _write(tmp_path, "notes.py", "VALUE = 1\n")
        assert load_migrations(tmp_path) == []

    def test_broken_file(self, tmp_path):
        _write(tmp_path, "1_broken.py", "this is not python\n")
        with pytest.raises(MigrationLoadError) as info:
            load_migrations(tmp_path)
        assert info.value.path.endswith("1_broken.py")

    def test_duplicate_names_across_files(self, tmp_path):
        _write(tmp_path, "1_a.py", _CREATE_USERS)
        _write(tmp_path, "2_b.py", _CREATE_USERS)
        with pytest.raises(DuplicateMigrationError):
            load_migrations(tmp_path)

    async def test_loaded_migrations_run(self, db, tmp_path):
        _write(tmp_path, "1000_create_users.py", _CREATE_USERS)
        engine = MigrationEngine(db, load_migrations(tmp_path))
        await engine.migrate_up_to_latest()
        assert await table_exists(db.executor, "users")


class TestRenderMigration:
    def test_template_dir_overrides_default(self, tmp_path):
        _write(tmp_path, "migration.py.j2", "override {{ name }}")
        assert render_migration("x", 1, template_dir=tmp_path) == "override x"

    def test_falls_back_to_packaged_template(self, tmp_path):
        source = render_migration("x", 1, template_dir=tmp_path)
        assert "async def up(db: Database)" in source
        assert 'name="x"' in source

    def test_missing_variable_is_an_error(self, tmp_path):
        from jinja2 import UndefinedError

        _write(tmp_path, "migration.py.j2", "{{ name }} {{ author }}")
        with pytest.raises(UndefinedError):
            render_migration("x", 1, template_dir=tmp_path)
