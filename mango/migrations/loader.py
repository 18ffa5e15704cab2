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

"""Load migrations from a directory of Python files.

Each file defines one or more module-level :class:`Migration` instances,
typically as generated by :func:`mango.migrations.scaffold.generate_migration_file`::

    # migrations/1700000000000_create_users.py
    async def up(db): ...
    async def down(db): ...
    migration = Migration(name="create_users", timestamp=1700000000000, up=up, down=down)

Files whose name starts with ``_`` are skipped.
"""

from __future__ import annotations

import importlib.util
import logging
import re
from pathlib import Path

from mango.errors import DuplicateMigrationError, MigrationLoadError
from mango.migrations.models import Migration

logger = logging.getLogger(__name__)


def _load_module(path: Path):
    module_name = "mango_migration_" + re.sub(r"\W", "_", path.stem)
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise MigrationLoadError(str(path), "not an importable Python file")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise MigrationLoadError(str(path), str(exc)) from exc
    return module


def load_migrations(directory: str | Path) -> list[Migration]:
    """Import every migration file in *directory*.

    Returns the migrations in file-name order; the engine re-sorts by
    timestamp.  A missing directory yields an empty list.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        logger.warning("Migrations directory not found: %s", directory)
        return []

    migrations: list[Migration] = []
    seen: set[str] = set()
    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("_"):
            continue
        module = _load_module(path)
        found = [v for v in vars(module).values() if isinstance(v, Migration)]
        if not found:
            logger.warning("No Migration defined in %s", path.name)
        for migration in found:
            if migration.name in seen:
                raise DuplicateMigrationError(migration.name)
            seen.add(migration.name)
            migrations.append(migration)

    logger.debug("Loaded %d migration(s) from %s", len(migrations), directory)
    return migrations
